"""
JSON schemas (Draft 2020-12) for agent responses.
"""

PACING_PROFILES = ["FAST_CUT", "LUXURY_SLOW", "KINETIC_RAMP", "STEADY_CINEMATIC"]

STRATEGIC_CONTEXT_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "strategic_directives": {"type": "string", "minLength": 1},
        "pacing_profile": {"type": "string", "enum": PACING_PROFILES},
        "optimized_motion_dna": {"type": "string", "minLength": 1},
        "optimized_image_instruction": {"type": "string", "minLength": 1},
    },
    "required": [
        "strategic_directives",
        "pacing_profile",
        "optimized_motion_dna",
        "optimized_image_instruction",
    ],
    "additionalProperties": False,
}

NARRATIVE_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "script_summary": {"type": "string"},
        "visual_beats": {
            "type": "array",
            "minItems": 1,
            "maxItems": 3,
            "items": {
                "type": "object",
                "properties": {
                    "beatId": {"type": "string", "enum": ["beat1", "beat2", "beat3"]},
                    "beatName": {"type": "string", "minLength": 2, "maxLength": 50},
                    "beatDescription": {"type": "string", "minLength": 50, "maxLength": 300},
                    "duration": {"const": 12},
                },
                "required": ["beatId", "beatName", "beatDescription", "duration"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["visual_beats"],
    "additionalProperties": False,
}

BEAT_PROMPTS_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "beat_prompts": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "beatId": {"type": "string"},
                    "image_prompt": {"type": "string", "minLength": 1},
                    "video_prompt": {"type": "string", "minLength": 1},
                },
                "required": ["beatId", "image_prompt", "video_prompt"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["beat_prompts"],
    "additionalProperties": False,
}

_SHOT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "description": {"type": "string"},
        "duration": {"type": "number", "exclusiveMinimum": 0},
        "isLinkedToPrevious": {"type": "boolean"},
    },
    "required": ["id", "description", "duration"],
}

STORYBOARD_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "scenes": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "shots": {"type": "array", "minItems": 1, "items": _SHOT_SCHEMA},
                },
                "required": ["id", "name", "shots"],
            },
        },
    },
    "required": ["scenes"],
    "additionalProperties": False,
}

VLOG_SCRIPT_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "script": {"type": "string", "minLength": 1},
        "estimated_duration": {"type": "number"},
    },
    "required": ["script"],
    "additionalProperties": False,
}

SCENE_BREAKDOWN_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "scenes": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "duration": {"type": "number"},
                },
                "required": ["id", "name", "description"],
            },
        },
    },
    "required": ["scenes"],
    "additionalProperties": False,
}
