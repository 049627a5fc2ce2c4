"""
linear_system.py - Sistemi lineari: tri-diagonale e sparso

=============================================================================
MODULE OVERVIEW
=============================================================================

Two interchangeable backing representations for the linear systems built
by the matrix schemes:

    TridiagonalSystem   lower/diag/upper vectors + rhs, direct banded
                        solve (scipy.linalg.solve_banded), exact, O(n).
                        Used by ADI lines and by every matrix scheme in 1D.

    SparseSystem        (row, col, value) triplet buffers reserved for
                        n × (1 + 2·dims) entries, cleared and reused every
                        step, assembled to CSR and solved by a
                        preconditioned Krylov method with warm start.

SOLVER METHODS:
    - "bicgstab": BiConjugate Gradient Stabilized (default)
    - "cg": Conjugate Gradient (the matrices are symmetric)
    - "gmres": Generalized Minimal Residual
    - "direct": LU factorization via scipy.sparse.linalg.spsolve

PRECONDITIONERS:
    - "ilu": Incomplete LU (default)
    - "jacobi": Diagonal scaling
    - "amg": Algebraic multigrid (pyamg, Ruge-Stuben)
    - "none"

Non-convergence is not fatal: a SolverConvergenceWarning carrying the
iteration count and residual is issued and the last iterate is used.
=============================================================================
"""

import time
import warnings
import numpy as np
import pyamg
from scipy import sparse
from scipy.linalg import solve_banded
from scipy.sparse import linalg as splinalg
from dataclasses import dataclass, field
from typing import Optional, Dict, Any


class SolverConvergenceWarning(RuntimeWarning):
    """Il solutore iterativo non ha raggiunto la tolleranza"""
    pass


@dataclass
class SolverConfig:
    """Configurazione del solutore

    Attributes:
        method: "bicgstab", "cg", "gmres" o "direct"
        tolerance: Tolleranza relativa sul residuo
        max_iterations: Limite di iterazioni per i metodi iterativi
        preconditioner: "ilu", "jacobi", "amg" o "none"
        verbose: Se True, stampa informazioni di progresso
    """
    method: str = "bicgstab"        # "bicgstab", "cg", "gmres", "direct"
    tolerance: float = 1e-8         # Tolleranza per metodi iterativi
    max_iterations: int = 10000     # Max iterazioni
    preconditioner: str = "ilu"     # "ilu", "jacobi", "amg", "none"
    verbose: bool = False           # Stampa info

    def validate(self):
        if self.method.lower() not in ("bicgstab", "cg", "gmres", "direct"):
            raise ValueError(f"Metodo non supportato: {self.method}")
        if self.preconditioner.lower() not in ("ilu", "jacobi", "amg", "none"):
            raise ValueError(f"Precondizionatore non supportato: {self.preconditioner}")
        if self.tolerance <= 0.0 or self.max_iterations < 1:
            raise ValueError("tolerance e max_iterations devono essere positivi")


@dataclass
class SolverResult:
    """Risultato della soluzione"""
    x: np.ndarray                   # Soluzione
    converged: bool                 # Convergenza raggiunta
    iterations: int                 # Numero di iterazioni
    residual: float                 # Residuo relativo finale
    solve_time: float               # Tempo di soluzione [s]
    info: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# SISTEMA TRI-DIAGONALE
# =============================================================================

class TridiagonalSystem:
    """
    Sistema tri-diagonale A·x = b.

    lower[i] = A[i, i-1] (lower[0] ignorato), upper[i] = A[i, i+1]
    (upper[-1] ignorato). Più sistemi indipendenti possono stare nello
    stesso vettore: basta azzerare gli accoppiamenti tra i blocchi.
    """

    def __init__(self, size: int):
        self.size = size
        self.lower = np.zeros(size)
        self.diag = np.zeros(size)
        self.upper = np.zeros(size)
        self.rhs = np.zeros(size)

    def solve(self) -> np.ndarray:
        """Soluzione diretta a banda (Thomas)"""
        n = self.size
        if n == 1:
            return self.rhs / self.diag
        ab = np.zeros((3, n))
        ab[0, 1:] = self.upper[:-1]
        ab[1] = self.diag
        ab[2, :-1] = self.lower[1:]
        return solve_banded((1, 1), ab, self.rhs, check_finite=False)


# =============================================================================
# SISTEMA SPARSO
# =============================================================================

class SparseSystem:
    """
    Sistema sparso assemblato da triplette (riga, colonna, valore).

    I buffer sono allocati una volta e riutilizzati a ogni passo;
    le triplette duplicate vengono sommate in fase di assemblaggio.
    """

    def __init__(self, size: int, n_dims: int, config: Optional[SolverConfig] = None):
        self.size = size
        self.config = config if config is not None else SolverConfig()
        self.config.validate()

        capacity = size * (1 + 2 * n_dims)
        self._rows = np.empty(capacity, dtype=np.int64)
        self._cols = np.empty(capacity, dtype=np.int64)
        self._values = np.empty(capacity, dtype=np.float64)
        self._count = 0
        self.rhs = np.zeros(size)

        self._A: Optional[sparse.csr_matrix] = None
        self._iter_count = 0

    @property
    def capacity(self) -> int:
        return len(self._values)

    @property
    def nnz_reserved(self) -> int:
        """Triplette attualmente inserite"""
        return self._count

    def clear(self):
        """Svuota i buffer senza riallocarli"""
        self._count = 0
        self.rhs[:] = 0.0
        self._A = None

    def add(self, rows: np.ndarray, cols: np.ndarray, values: np.ndarray):
        """Aggiunge un gruppo di triplette"""
        n = len(values)
        end = self._count + n
        if end > self.capacity:
            # Stima superata: raddoppia i buffer
            new_capacity = max(end, 2 * self.capacity)
            self._rows = np.resize(self._rows, new_capacity)
            self._cols = np.resize(self._cols, new_capacity)
            self._values = np.resize(self._values, new_capacity)
        self._rows[self._count:end] = rows
        self._cols[self._count:end] = cols
        self._values[self._count:end] = values
        self._count = end

    def assemble(self) -> sparse.csr_matrix:
        """Matrice CSR dalle triplette correnti"""
        n = self._count
        A = sparse.coo_matrix(
            (self._values[:n], (self._rows[:n], self._cols[:n])),
            shape=(self.size, self.size)
        )
        self._A = A.tocsr()
        return self._A

    # =========================================================================
    # SOLUZIONE
    # =========================================================================

    def solve(self, x0: Optional[np.ndarray] = None) -> SolverResult:
        """
        Risolve il sistema assemblato.

        Args:
            x0: Punto iniziale (warm start), tipicamente la soluzione precedente

        Returns:
            SolverResult con la soluzione (ultima iterata se non converge)
        """
        if self._A is None:
            self.assemble()

        t_start = time.perf_counter()
        method = self.config.method.lower()

        if method == "direct":
            x = splinalg.spsolve(self._A.tocsc(), self.rhs)
            result = SolverResult(x=x, converged=True, iterations=1,
                                  residual=self._residual(x), solve_time=0.0,
                                  info={'method': method})
        else:
            result = self._solve_iterative(method, x0)

        result.solve_time = time.perf_counter() - t_start

        if not result.converged:
            warnings.warn(
                f"Solutore '{method}' non convergente dopo {result.iterations} iterazioni "
                f"(residuo {result.residual:.3e}, tolleranza {self.config.tolerance:.1e})",
                SolverConvergenceWarning,
                stacklevel=2
            )

        if self.config.verbose:
            print(f"[SOLVER] {method}: {result.iterations} iterazioni, "
                  f"residuo {result.residual:.2e}, {result.solve_time * 1000:.1f} ms")
        return result

    def _residual(self, x: np.ndarray) -> float:
        r = self._A @ x - self.rhs
        return float(np.linalg.norm(r) / max(np.linalg.norm(self.rhs), 1e-12))

    def _solve_iterative(self, method: str, x0: Optional[np.ndarray]) -> SolverResult:
        """Risolve con metodo iterativo"""
        if x0 is None or len(x0) != self.size:
            # Stima Jacobi: x0 = b / diag(A)
            diag = self._A.diagonal()
            x0 = self.rhs / np.where(np.abs(diag) < 1e-12, 1.0, diag)

        self._iter_count = 0

        def callback(xk):
            self._iter_count += 1

        def run_solver(M_prec):
            kwargs = dict(x0=x0, M=M_prec, rtol=self.config.tolerance,
                          maxiter=self.config.max_iterations, callback=callback)
            if method == "cg":
                return splinalg.cg(self._A, self.rhs, **kwargs)
            elif method == "gmres":
                return splinalg.gmres(self._A, self.rhs, callback_type='x', **kwargs)
            elif method == "bicgstab":
                return splinalg.bicgstab(self._A, self.rhs, **kwargs)
            else:
                raise ValueError(f"Metodo non supportato: {method}")

        x, info = run_solver(self._get_preconditioner())
        residual = self._residual(x)
        converged = (info == 0)

        # In alcuni casi ILU non converge: si ritenta con Jacobi
        if not converged and self.config.preconditioner.lower() == "ilu":
            self._iter_count = 0
            x_retry, info_retry = run_solver(self._get_preconditioner_jacobi())
            if info_retry == 0:
                x, info, residual, converged = x_retry, info_retry, self._residual(x_retry), True

        return SolverResult(
            x=x,
            converged=converged,
            iterations=self._iter_count,
            residual=residual,
            solve_time=0.0,
            info={'method': method, 'info_code': info}
        )

    def _get_preconditioner(self) -> Optional[splinalg.LinearOperator]:
        """Costruisce il precondizionatore"""
        prec_type = self.config.preconditioner.lower()

        if prec_type == "none":
            return None

        elif prec_type == "jacobi":
            return self._get_preconditioner_jacobi()

        elif prec_type == "ilu":
            try:
                ilu = splinalg.spilu(self._A.tocsc(), drop_tol=1e-4, fill_factor=10)
            except RuntimeError as e:
                if self.config.verbose:
                    print(f"[SOLVER] Errore ILU, uso Jacobi: {e}")
                return self._get_preconditioner_jacobi()
            return splinalg.LinearOperator(self._A.shape, matvec=ilu.solve)

        # AMG Ruge-Stuben: adatto a problemi di diffusione
        ml = pyamg.ruge_stuben_solver(self._A, max_coarse=500, max_levels=10,
                                      strength='symmetric')
        return ml.aspreconditioner(cycle='V')

    def _get_preconditioner_jacobi(self):
        diag = self._A.diagonal()
        diag[np.abs(diag) < 1e-10] = 1.0  # Evita divisione per zero
        return sparse.diags(1.0 / diag)
