from typing import Sequence

__all__: Sequence[str] = (
    "UI_LOAD_OPERATION",
    "APP_START_CHILD_OPERATION_PREFIX",
    "MEASUREMENT_APP_START_COLD",
    "MEASUREMENT_APP_START_WARM",
    "MEASUREMENT_TIME_TO_INITIAL_DISPLAY",
    "MEASUREMENT_TIME_TO_FULL_DISPLAY",
    "TAG_START_TYPE",
    "TAG_UI_LOAD_TYPE",
    "DATA_APP_START_TYPE",
    "DATA_PROCESS_INIT_DURATION_MS",
    "DATA_PROCESS_START_TIME_MS",
    "DATA_ACTUAL_DURATION_MS",
    "DATA_DURATION_MS",
    "DATA_SCREEN",
    "DEFAULT_PLACEHOLDER_TRANSACTION_NAME",
    "DEFAULT_SERVICE_NAME",
)

# Operation recognized by the backend's mobile vitals / startup aggregation
UI_LOAD_OPERATION = "ui.load"
APP_START_CHILD_OPERATION_PREFIX = "app.start"

# DO NOT RENAME: backend aggregation matches these exact strings
MEASUREMENT_APP_START_COLD = "app_start_cold"
MEASUREMENT_APP_START_WARM = "app_start_warm"
MEASUREMENT_TIME_TO_INITIAL_DISPLAY = "time_to_initial_display"
MEASUREMENT_TIME_TO_FULL_DISPLAY = "time_to_full_display"

TAG_START_TYPE = "start_type"
TAG_UI_LOAD_TYPE = "ui.load.type"

DATA_APP_START_TYPE = "app_start_type"
DATA_PROCESS_INIT_DURATION_MS = "process_init_duration_ms"
DATA_PROCESS_START_TIME_MS = "process_start_time_ms"
DATA_ACTUAL_DURATION_MS = "actual_duration_ms"
DATA_DURATION_MS = "duration_ms"
DATA_SCREEN = "screen"

DEFAULT_PLACEHOLDER_TRANSACTION_NAME = "AppStart"
DEFAULT_SERVICE_NAME = "app-start-tracing"
