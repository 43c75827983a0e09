"""Shared names for stack action workflows."""

CHANGE_SET_NAME_PREFIX = "stackflow"

# Diagnostic source tag for findings produced by change-set dry runs.
CFN_VALIDATION_SOURCE = "CFN Dry-Run"

VALIDATION_V2_NAME = "Enhanced Validation"
DRY_RUN_VALIDATION_NAME = "Dry-Run Validation"

REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
VALIDATION_ERROR_EVENT = "VALIDATION_ERROR"
VALIDATION_FAILURE_MODE_FAIL = "FAIL"

RESOURCES_SECTION = "Resources"
