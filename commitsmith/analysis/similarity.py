"""String similarity helpers used by movement and rename detection."""


def char_overlap(a: str, b: str) -> float:
    """Fraction of positions holding the same character, over the longer string."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / longer


def levenshtein_distance(a: str, b: str, max_distance: int | None = None) -> int:
    """Edit distance between a and b.

    With max_distance set, only a diagonal band is computed and any result
    above the bound is reported as max_distance + 1.
    """
    # Common prefix and suffix never change the distance
    start = 0
    while start < len(a) and start < len(b) and a[start] == b[start]:
        start += 1
    end_a, end_b = len(a), len(b)
    while end_a > start and end_b > start and a[end_a - 1] == b[end_b - 1]:
        end_a -= 1
        end_b -= 1
    a, b = a[start:end_a], b[start:end_b]

    if len(a) < len(b):
        a, b = b, a
    n, m = len(a), len(b)

    if max_distance is not None and n - m > max_distance:
        return max_distance + 1
    if m == 0:
        return n

    limit = n + m + 1
    band = max_distance if max_distance is not None else limit
    previous = [j if j <= band else limit for j in range(m + 1)]

    for i in range(1, n + 1):
        lo = max(1, i - band)
        hi = min(m, i + band)
        current = [limit] * (m + 1)
        if i <= band:
            current[0] = i
        ch = a[i - 1]
        for j in range(lo, hi + 1):
            cost = 0 if ch == b[j - 1] else 1
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
        if max_distance is not None and min(current[lo - 1:hi + 1]) > max_distance:
            return max_distance + 1
        previous = current

    distance = previous[m]
    if max_distance is not None and distance > max_distance:
        return max_distance + 1
    return distance


def similarity(a: str, b: str) -> float:
    """1 - levenshtein / max(len) in [0, 1]."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longer


def is_similar(a: str, b: str, threshold: float) -> bool:
    """True when similarity(a, b) >= threshold. Empty bodies never match."""
    if not a or not b:
        return False
    longer = max(len(a), len(b))
    bound = int((1.0 - threshold) * longer + 1e-9)
    distance = levenshtein_distance(a, b, max_distance=bound)
    if distance > bound:
        return False
    return 1.0 - distance / longer >= threshold - 1e-12
