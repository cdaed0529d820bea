#server_constants - catalog service defaults.
SERVICE_HOST = '127.0.0.1'
SERVICE_PORT = 8088

CATALOG_PATH = "fonts.json"
CATALOG_ENV_VAR = "ASCII_ART_CATALOG"
LIBRARIFY_OUTFILE = "fonts.json"

ACTION_HEADER = "aa-action"
ACTION_PARAM = "action"

MAX_UPLOAD_BYTES = 16 * 1024 * 1024
MAX_CONCURRENT_RENDERS = 8   # Max simultaneous render requests
REQUEST_TIMEOUT = 30         # socket timeout per connection (seconds)

LOG_LEVEL = "INFO"
CORS_ORIGIN = "*"            # Access-Control-Allow-Origin on every response
