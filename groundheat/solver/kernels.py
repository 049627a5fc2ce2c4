"""
kernels.py - Kernel Numba per lo schema ADE

Lo schema Alternating Direction Explicit esegue due passate sulle celle
attive, una in ordine crescente e una decrescente. In ciascuna passata i
vicini già aggiornati sono trattati implicitamente con il loro nuovo
valore, gli altri esplicitamente con il valore del passo precedente:

    T_p' = (C T_p + Σ_agg G T_f' + Σ_altri G (T_f - T_p) + S) / (C + Σ_agg G + U)

Le due passate leggono solo t_old e scrivono ciascuna il proprio array,
quindi possono girare in parallelo (nogil) senza sincronizzazione.
"""

from numba import njit


@njit(cache=True, nogil=True)
def ade_sweep(t_old, capacitance, coupling, conductance,
              boundary_conductance, source, ascending, out):
    """
    Una passata ADE.

    Args:
        t_old: Temperature del passo precedente (sola lettura)
        capacitance: C/dt per cella attiva [W/K]
        coupling: (M, 6) vicino attivo o -1
        conductance: (M, 6) conduttanze [W/K]
        boundary_conductance: U per cella [W/K]
        source: S per cella [W]
        ascending: True per la passata crescente
        out: Array di uscita (scritto da questa passata soltanto)
    """
    n = t_old.shape[0]
    for step in range(n):
        p = step if ascending else n - 1 - step
        t_p = t_old[p]
        num = capacitance[p] * t_p + source[p]
        den = capacitance[p] + boundary_conductance[p]
        for d in range(6):
            f = coupling[p, d]
            if f < 0:
                continue
            g = conductance[p, d]
            if (f < p) == ascending:
                # Vicino già aggiornato in questa passata
                num += g * out[f]
                den += g
            else:
                num += g * (t_old[f] - t_p)
        out[p] = num / den
    return out


@njit(cache=True, nogil=True)
def sweep_mean(upward, downward, out):
    """Media delle due passate"""
    for p in range(out.shape[0]):
        out[p] = 0.5 * (upward[p] + downward[p])
    return out
