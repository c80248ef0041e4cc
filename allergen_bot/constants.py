"""All magic values live here — no inline literals anywhere else."""

# Allergens
DEFAULT_ALLERGEN = "gluten"
SELECTABLE_ALLERGENS: tuple[str, ...] = ("gluten", "caffeine", "chocolate")
COMING_SOON_ALLERGENS: tuple[str, ...] = ("dairy", "soy", "nuts")

# Image precondition enforced by the UI before a check starts
MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_IMAGE_MIME = "image/jpeg"

# OpenAI request settings
OPENAI_VISION_MODEL = "gpt-4o"
OPENAI_TEXT_MODEL = "gpt-4o"
OPENAI_TIMEOUT: float = 60.0
IMAGE_MAX_TOKENS = 500
TEXT_MAX_TOKENS = 300
ANALYSIS_TEMPERATURE = 0.3
IMAGE_DETAIL = "high"
RESPONSE_FORMAT = {"type": "json_object"}

# Retry
DEFAULT_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY: float = 1.0

# Prompts
SYSTEM_PROMPT_IMAGE = (
    "You are an expert allergen-label analyst. You read food ingredient labels "
    "and identify allergens. Provide clear, accurate analysis."
)
SYSTEM_PROMPT_TEXT = (
    "You are an expert allergen-label analyst. You analyze food ingredient lists "
    "for allergens. Provide clear, accurate analysis."
)
IMAGE_PROMPT_TEMPLATE = """Please analyze this ingredient label for the following allergens: {allergens}.

Respond in this exact JSON format:
{{
  "status": "SAFE" or "UNSAFE" or "UNCERTAIN",
  "flaggedIngredients": ["ingredient1", "ingredient2"],
  "explanation": "Brief explanation of why it's safe/unsafe",
  "extractedText": "The full ingredient list extracted from the image"
}}

Be thorough but concise. If you can't read the image clearly, mark as UNCERTAIN."""
TEXT_PROMPT_TEMPLATE = """Analyze this ingredient list for {allergens}: "{ingredients}"

Respond in this exact JSON format:
{{
  "status": "SAFE" or "UNSAFE" or "UNCERTAIN",
  "flaggedIngredients": ["ingredient1", "ingredient2"],
  "explanation": "Brief explanation of why it's safe/unsafe"
}}

Consider hidden sources of allergens (derived ingredients such as malt, barley \
extract or guarana) and cross-contamination warnings."""

# Normalizer
MSG_PARSE_FALLBACK = "Unable to parse the analysis. Please try again."
LOG_DEGRADED = "Model output could not be normalized (%s)"

# Telegram chat action re-send interval (seconds).
# Actions expire after ~5 s, so we refresh every 4 s.
TELEGRAM_ACTION_INTERVAL: float = 4.0

# Storage
CHECK_STORE_PATH = ".checks.json"
ALLERGEN_STORE_PATH = ".allergens.json"
IMAGE_ANALYSIS_PLACEHOLDER = "Image analysis"

# Log messages
MSG_BOT_STARTING = "Starting allergen check bot…"
MSG_BLOCKED_CHAT = "Blocked update from chat_id: %s"
MSG_NO_RESPONSE = "No response generated"
MSG_SEND_OK = "✓ Sent (%.1fs)"
MSG_SEND_FAIL = "✗ Send failed (%.1fs)"
LOG_RETRY = "Attempt %d failed (%s), retrying in %.1fs"
LOG_ANALYSIS_START = "→ %s check (%d allergens)"
LOG_ANALYSIS_DONE = "✓ Verdict %s"
LOG_ANALYSIS_FAILED = "✗ Analysis failed after retries: %s"
LOG_PERSIST_FAILED = "Could not save check for user %s: %s"

# User-facing analysis errors
MSG_ERR_RATE_LIMITED = "Too many requests. Please wait a moment and try again."
MSG_ERR_NETWORK = "Could not reach the analysis service. Check your connection and try again."
MSG_ERR_ANALYZE_IMAGE = "Failed to analyze image. Please try again."
MSG_ERR_ANALYZE_TEXT = "Failed to analyze ingredients. Please try again."
MSG_ERR_EMPTY_TEXT = "Please enter some ingredients to analyze"
MSG_ERR_IMAGE_TOO_LARGE = "Image size should be less than 5MB"
MSG_ERR_BUSY = "Still checking your last item — send /cancel to stop it."
MSG_ERR_STORAGE = "Could not reach your saved checks. Please try again."
MSG_ERR_NOT_SAVED = "Note: this check could not be saved to your history."
MSG_CANCELLED = "Check cancelled."
MSG_CANCELLING = "Cancelling your check."
MSG_NOTHING_TO_CANCEL = "Nothing to cancel."

# Verdict rendering
VERDICT_HEADLINES = {
    "SAFE": "✓ Safe to Consume",
    "UNSAFE": "✗ Contains Allergens",
    "UNCERTAIN": "? Uncertain - Review Needed",
}
MSG_FLAGGED = "Flagged ingredients: %s"
MSG_EXTRACTED = "Extracted ingredients: %s"
MSG_CHECKED_FOR = "Checked for: %s"

# Commands
CMD_START = "start"
CMD_HELP = "help"
CMD_ALLERGENS = "allergens"
CMD_HISTORY = "history"
CMD_FAVORITES = "favorites"
CMD_FAVORITE = "favorite"
CMD_UNFAVORITE = "unfavorite"
CMD_DELETE = "delete"
CMD_CANCEL = "cancel"

# /allergens
MSG_ALLERGENS_STATUS = "Checking for: %s\nAvailable: %s\nComing soon: %s"
MSG_ALLERGENS_USAGE = "Usage:\n  /allergens add <name>\n  /allergens remove <name>"
MSG_ALLERGEN_LOCKED = "%s is always on."
MSG_ALLERGEN_COMING_SOON = "%s is coming soon."
MSG_ALLERGEN_UNKNOWN = "Unknown allergen: %s"
MSG_ALLERGENS_UPDATED = "Now checking for: %s"
MSG_ERR_ALLERGENS_NOT_SAVED = "Could not save your allergen selection. Please try again."

# History / favorites
HISTORY_MAX_ENTRIES = 10
HISTORY_SNIPPET_LENGTH = 40
HISTORY_TIME_FORMAT = "%Y-%m-%d %H:%M"
SHORT_ID_LENGTH = 8
MSG_HISTORY_EMPTY = "No checks yet — send an ingredient list or a label photo."
MSG_FAVORITES_EMPTY = "No favorites yet — use /favorite <id> from /history."
MSG_HISTORY_HEADER = "Last %d checks:\n"
MSG_FAVORITES_HEADER = "Favorites (%d):\n"
MSG_HISTORY_LINE = "%s %s [%s] %s — %s"
MSG_SIGN_IN_REQUIRED = "History is only kept for identified users."
MSG_CHECK_NOT_FOUND = "No check found with id %s"
MSG_ID_USAGE = "Usage: /%s <id>"
MSG_FAVORITE_SET = "★ Added to favorites."
MSG_FAVORITE_CLEARED = "Removed from favorites."
MSG_CHECK_DELETED = "Check deleted."

MSG_HELP = (
    "allergen-bot — check ingredients for allergens\n"
    "\n"
    "Checks:\n"
    "  Text message             — analyze a typed ingredient list\n"
    "  Photo                    — read and analyze an ingredient label\n"
    "  /cancel                  — stop the check in progress\n"
    "\n"
    "Allergens (gluten is always on):\n"
    "  /allergens               — show what is checked\n"
    "  /allergens add <name>    — also check caffeine or chocolate\n"
    "  /allergens remove <name> — stop checking one\n"
    "\n"
    "Saved checks:\n"
    "  /history                 — your recent checks\n"
    "  /favorites               — your favorite checks\n"
    "  /favorite <id>           — mark a check as favorite\n"
    "  /unfavorite <id>         — unmark a favorite\n"
    "  /delete <id>             — delete a check\n"
)
