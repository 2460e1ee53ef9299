"""
Backend selection and management.

Provides a unified interface for the NumPy/SciPy CPU backend and the
optional PyTorch backend.
"""

from importlib.util import find_spec
from typing import Optional

from ..options import options
from .base import BackendBase, LeastSquaresResult
from .cpu_fp64_backend import CPUBackendFP64
from .torch_backend import TorchBackendFP64

TORCH_AVAILABLE = find_spec("torch") is not None


def _cuda_available() -> bool:
    if not TORCH_AVAILABLE:
        return False
    import torch
    return torch.cuda.is_available()


def get_backend(backend: Optional[str] = None, device: Optional[str] = None) -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str, optional
        Backend selection (default ``options.backend``):
        - 'auto': PyTorch on a CUDA GPU when available, CPU otherwise
        - 'cpu': CPU with NumPy/SciPy (FP64, reference)
        - 'torch': PyTorch FP64 on ``device`` (CUDA if available)
        - 'gpu': PyTorch FP64 on CUDA; fails without a GPU
        A backend instance is returned unchanged.
    device : str, optional
        Torch device override (``'cuda'``, ``'cuda:1'``, ``'cpu'``)

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend('cpu')
    >>> backend.name
    'cpu_fp64'
    """
    if isinstance(backend, BackendBase):
        return backend
    if backend is None:
        backend = options.backend

    if backend == 'auto':
        if _cuda_available():
            return TorchBackendFP64(device='cuda')
        return CPUBackendFP64()

    elif backend == 'cpu':
        return CPUBackendFP64()

    elif backend == 'torch':
        if not TORCH_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install torch"
            )
        return TorchBackendFP64(device=device)

    elif backend == 'gpu':
        if not _cuda_available():
            raise ValueError(
                "No CUDA GPU detected.\n"
                "Options:\n"
                "  - Use backend='cpu'\n"
                "  - Install PyTorch with CUDA for NVIDIA"
            )
        return TorchBackendFP64(device=device or 'cuda')

    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'torch', 'gpu'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = ['cpu']
    if TORCH_AVAILABLE:
        backends.append('torch')
    if _cuda_available():
        backends.append('gpu')
    return backends


__all__ = [
    'get_backend',
    'list_available_backends',
    'BackendBase',
    'LeastSquaresResult',
    'CPUBackendFP64',
    'TorchBackendFP64',
    'TORCH_AVAILABLE',
]
