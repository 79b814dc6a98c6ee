"""Commit message and pull request body construction from the update log."""

LOG_FENCE_OPEN = "```txt\n"
LOG_FENCE_CLOSE = "```\n"


def build_commit_message(preamble: str, log: str) -> str:
    """Build the commit message: the preamble immediately followed by the log.

    Args:
        preamble: Fixed commit message prefix.
        log: Filtered update log.

    Returns:
        preamble + log, byte for byte.
    """
    return preamble + log


def build_pr_body(preamble: str, log: str) -> str:
    """Build the pull request body.

    The preamble comes first, then a blank line, then the log inside a
    ``txt`` fenced block. The closing fence always starts its own line,
    even when the log lacks a trailing newline.

    Args:
        preamble: Fixed introductory text.
        log: Filtered update log.

    Returns:
        Markdown body.
    """
    fenced_log = log if not log or log.endswith("\n") else log + "\n"
    return (
        preamble.rstrip("\n")
        + "\n\n"
        + LOG_FENCE_OPEN
        + fenced_log
        + LOG_FENCE_CLOSE
    )
