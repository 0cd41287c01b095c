from modular_program.runtime import Context, Mut

from .contexts import BarAccounts


def instr(ctx: Mut[Context[BarAccounts]], n: int) -> int:
    assert n == 3
    return n
