from foureyes.hosting.github import Github


def get(git, **data):
    if git == "github":
        return Github(**data)
    raise ValueError(f"Unsupported git provider: {git}")
