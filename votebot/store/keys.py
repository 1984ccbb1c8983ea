# ---------------------------------------------------------
# Issue ↔ discussion associations
# ---------------------------------------------------------

# Surrogate id counter
ASSOCIATION_SEQ = "votebot:association:seq"

# Row hash, one per association
# Key format:
#   votebot:association:{id}
ASSOCIATION_PREFIX = "votebot:association:"

# Every row id ever created for an issue (audit trail)
ISSUE_INDEX_PREFIX = "votebot:association:issue:"

# Id of the single tracking row of an issue, absent when none
ACTIVE_PREFIX = "votebot:association:active:"
