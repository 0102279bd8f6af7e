"""Shared constants for the IBC token migration tool."""

# HTTP status codes
HTTP_NOT_FOUND = 404
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

# IBC
TRANSFER_PORT = "transfer"
ICS20_VERSION = "ics20-1"
DEFAULT_IBC_TIMEOUT = 300  # seconds, cw20-ics20 default_timeout

# Channel lifecycle state that accepts packets
CHANNEL_STATE_OPEN = "STATE_OPEN"

# Transaction result codes
TX_CODE_OK = 0

# REST paths
LCD_TX_PATH = "/cosmos/tx/v1beta1/txs/{txhash}"
LCD_BALANCE_PATH = "/cosmos/bank/v1beta1/balances/{address}/by_denom"
LCD_SMART_QUERY_PATH = "/cosmwasm/wasm/v1/contract/{address}/smart/{query}"
LCD_CHANNELS_PATH = "/ibc/core/channel/v1/channels"

DEFAULT_SETTINGS_FILE = "settings.yaml"
DEFAULT_STATE_FILE = "migration_state.json"
