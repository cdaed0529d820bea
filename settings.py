# settings.py
from constantStorage.render_constants import *
from constantStorage.server_constants import *

# -------------------------
# Local overrides
# -------------------------
# Values set here win over the constantStorage defaults above.
