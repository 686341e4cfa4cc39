"""HTTP status and submission surface for replywatch."""
