# Overview: Utility functions for action lookups.

from .definitions import ACTION_DEFINITIONS


def get_all_action_codes():
    """Get list of all action codes."""
    return [action[0] for action in ACTION_DEFINITIONS]


def get_action_definition(code):
    """Get full definition for an action code."""
    for action in ACTION_DEFINITIONS:
        if action[0] == code:
            return {
                "code": action[0],
                "name": action[1],
                "description": action[2],
                "category": action[3],
                "mutating": action[4],
            }
    return None


def is_mutating(code):
    definition = get_action_definition(code)
    return bool(definition and definition["mutating"])
