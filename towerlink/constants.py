"""Protocol constants shared by the tower transfer components."""

TOWER_SIZE = 2319
TOWER_REQUEST_CMD = "tower-request"
TOWER_RECEIVE_CONFIRM_CMD = "tower-request-complete"
MAX_CATCHUP_SLOT = 30