"""Human-readable formatting helpers for progress lines and summaries."""


def format_bytes(num_bytes: int) -> str:
    """Format a byte count using binary units."""
    if num_bytes >= 1024**4:
        return f"{num_bytes / (1024**4):.2f} TB"
    elif num_bytes >= 1024**3:
        return f"{num_bytes / (1024**3):.2f} GB"
    elif num_bytes >= 1024**2:
        return f"{num_bytes / (1024**2):.2f} MB"
    elif num_bytes >= 1024:
        return f"{num_bytes / 1024:.2f} KB"
    else:
        return f"{num_bytes} bytes"


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as e.g. ``1h 02m 03.4s``."""
    seconds = max(seconds, 0.0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours >= 1:
        return f"{int(hours)}h {int(minutes):02d}m {secs:04.1f}s"
    if minutes >= 1:
        return f"{int(minutes)}m {secs:04.1f}s"
    return f"{secs:.1f}s"
