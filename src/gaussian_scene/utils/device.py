import torch


def pick_device(prefer: str | None = "cuda") -> str:
    """Resolve a requested device ("cuda", "cuda:1", "cpu") to one that exists."""
    prefer = (prefer or "cuda").lower()
    if prefer.startswith("cuda"):
        if torch.cuda.is_available():
            return prefer
        print("[WARN] CUDA not available, falling back to CPU")
    return "cpu"
