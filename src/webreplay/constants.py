"""Shared constants for capture, playback and the action schema."""

ACTION_KINDS = (
    "click",
    "input",
    "change",
    "scroll",
    "navigation",
    "formSubmit",
    "tabCreate",
    "tabFocus",
)

# Kinds the orchestrator executes itself instead of sending to the page agent.
TAB_ACTION_KINDS = {"tabCreate", "tabFocus"}

# Kinds after which the playback tab is expected to load a new document.
NAVIGATING_ACTION_KINDS = {"navigation", "formSubmit"}

DELTA_KINDS = ("insertion", "deletion", "backspaceFromEnd", "replace")

TEXT_INPUT_TAGS = {"input", "textarea"}
CHECKABLE_TYPES = {"checkbox", "radio"}

PARENT_CONTEXT_DEPTH = 3

# Keys a page-side context entry may carry that hold live DOM references.
UNSERIALIZABLE_CONTEXT_KEYS = ("element", "parentElement", "children")

STORE_RECORDING_KEY = "isRecording"
STORE_ACTIONS_KEY = "actions"
STORE_SCRIPT_KEY = "recordingScript"

AGENT_READY_COMMAND = "isReady"
AGENT_PLAY_COMMAND = "playAction"

AGENT_ERROR_CODES = {"locator", "timeout", "execution", "invalid"}

# Defaults; each can be overridden through the WEBREPLAY_* environment.
PROBE_INTERVAL_MS = 100
READY_TIMEOUT_SECONDS = 5.0
DISPATCH_TIMEOUT_SECONDS = 30.0
MAX_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 1.0
SETTLE_MS = 500
POST_LOAD_SETTLE_MS = 1500
SCROLL_THRESHOLD_PX = 50
SCROLL_DEBOUNCE_MS = 150

CAPTURE_BINDING_NAME = "__webreplayEmit"

# The recorder names tabs in the order it sees them; the page it starts on is the first.
TAB_REF_PREFIX = "tab-"
FIRST_RECORDED_TAB = f"{TAB_REF_PREFIX}1"
