"""
PyTorch backend with FP64 precision.

Runs the QR solve on a CUDA GPU when one is available, on the CPU
otherwise. Covariance and diagnostics stay in NumPy; only the primary
least-squares solve is offloaded.
"""

import warnings
from typing import Optional

import numpy as np

from ..exceptions import SingularSystemError
from .base import BackendBase, LeastSquaresResult
from .cpu_fp64_backend import singular_diagonal


class TorchBackendFP64(BackendBase):
    """
    PyTorch backend with FP64 precision.

    Keeps the solve on the device using torch tensors.
    Only converts at entry (numpy -> torch) and exit (torch -> numpy).
    """

    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "torch_fp64"
        self.precision = "fp64"

        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for the torch backend. "
                "Install: pip install torch"
            )

        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. "
                "Use the CPU backend."
            )

        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, torch backend using CPU")
                device = 'cpu'

        self.device = torch.device(device)

    def solve_least_squares(
        self,
        X: np.ndarray,
        y: np.ndarray,
        tol: float,
    ) -> LeastSquaresResult:
        """
        Fit least squares on the torch device.

        Same algorithm as the CPU backend: reduced QR then back-substitution.
        """
        torch = self.torch
        n, k = X.shape

        if k == 0:
            return LeastSquaresResult(
                coefficients=np.empty(0),
                residuals=y.copy(),
                fitted_values=np.zeros(n),
                rank=0,
                df_residual=n,
                qr_R=np.empty((0, 0)),
            )

        X_dev = torch.from_numpy(np.ascontiguousarray(X)).double().to(self.device)
        y_dev = torch.from_numpy(np.ascontiguousarray(y)).double().to(self.device)

        Q, R = torch.linalg.qr(X_dev, mode='reduced')

        R_diag = torch.diagonal(R).cpu().numpy()
        bad = singular_diagonal(R_diag, tol)
        if bad.size:
            raise SingularSystemError(
                f"Design matrix is rank deficient: column(s) {bad.tolist()} "
                f"have |R_jj| <= {tol:g} * max|R_jj|"
            )

        # Solve R b = Q'y
        qty = Q.T @ y_dev
        coef = torch.linalg.solve_triangular(
            R,
            qty.unsqueeze(1),  # Make it (k, 1)
            upper=True
        ).squeeze(1)

        fitted = X_dev @ coef
        residuals = y_dev - fitted

        return LeastSquaresResult(
            coefficients=coef.cpu().numpy(),
            residuals=residuals.cpu().numpy(),
            fitted_values=fitted.cpu().numpy(),
            rank=k,
            df_residual=n - k,
            qr_R=R.cpu().numpy(),
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'torch',
            'precision': 'fp64',
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }
