import math


def human_size(n: int | None) -> str:
    if n is None:
        return "unknown"
    units = ["B", "KB", "MB", "GB", "TB"]
    if n == 0:
        return "0 B"
    p = min(int(math.log(n, 1024)), len(units) - 1)
    return f"{n / (1024 ** p):.2f} {units[p]}"
