from typing import Collection

from foureyes.config import DEFAULT_PROTECTED_REFS


def is_relevant_ref(
    ref: str, protected_refs: Collection[str] = DEFAULT_PROTECTED_REFS
) -> bool:
    # Exact matches only. The merge queue pushes to staging/trying, never to the target branch
    return bool(ref) and ref in protected_refs
