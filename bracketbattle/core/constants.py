"""Global constants for the bracketbattle application."""

# Firestore collections
GAMES_COLLECTION = "bracket_games"
PROMPTS_COLLECTION = "bracket_prompts"
PROMPTS_SUBCOLLECTION = "prompts"
RESULTS_COLLECTION = "bracket_results"
BALLOTS_SUBCOLLECTION = "ballots"

# Snapshot layout version
SCHEMA_VERSION = 1

# Game statuses
STATUS_SETUP = "setup"
STATUS_WAITING = "waiting"
STATUS_VOTING = "voting"
STATUS_ROUND_OVER = "round_over"
STATUS_GAME_OVER = "game_over"

# Bracket
MIN_PROMPTS = 2
BYE_PROMPT_ID = "BYE_ID"
BYE_PROMPT_TEXT = "BYE (Auto-Win)"
BYE_CODE = "BYE"

# Voting
DEFAULT_VOTING_DURATION_SECONDS = 20

# Alias generation
ALIAS_MAX_ATTEMPTS = 100
ALIAS_FALLBACK_SUFFIX_MAX = 999

# Session keys
SESSION_IDENTITY_KEY = "player_key"
MODERATOR_TOKEN_HEADER = "X-Moderator-Token"  # nosec B105
