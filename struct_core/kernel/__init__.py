# struct_core/kernel - Element-agnostic numerical core
"""
KERNEL: ASSEMBLY, REDUCTION AND SOLVING
=======================================

Nothing in here knows what a beam or a plate is. The kernel only needs:
- A map (node_id, local_dof) → global DOF index (six per node)
- Element matrices/vectors with their global DOF maps
- The restrained DOF set
- Load vectors

    dof.py        DOFManager: numbering and restraint bookkeeping
    assemble.py   global K / K_g / M / F in dense or sparse storage
    reduce.py     free-free partition and back-expansion
    solve.py      direct, iterative and P-Delta solvers
    modal.py      natural frequencies, mass-normalized modes, participation
    buckling.py   linear buckling load factors
"""

from .dof import DOFManager
from .solve import factorize, solve_linear, solve_pdelta

__all__ = ['DOFManager', 'factorize', 'solve_linear', 'solve_pdelta']
