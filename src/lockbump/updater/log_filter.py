"""Noise filtering for captured update-command output."""

from typing import List, Tuple


def split_lines(output: str) -> List[str]:
    """Split text on newlines, keeping each line's terminator.

    Only "\\n" ends a line, matching how line-oriented tools like sed treat
    the output. A trailing fragment without a newline is kept as its own
    line.
    """
    parts = output.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def filter_noise_lines(output: str, noise_substring: str) -> Tuple[str, int]:
    """Drop every line that contains the noise substring.

    Line endings of the kept lines are preserved, so the result is the
    input with the matching lines cut out and nothing else changed.

    Args:
        output: Captured command output.
        noise_substring: Substring marking a line as noise.

    Returns:
        Tuple of (filtered text, number of dropped lines).
    """
    kept: List[str] = []
    dropped = 0
    for line in split_lines(output):
        if noise_substring in line:
            dropped += 1
            continue
        kept.append(line)
    return "".join(kept), dropped
