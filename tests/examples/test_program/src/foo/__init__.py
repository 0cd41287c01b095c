from modular_program.runtime import Context, instruction

from .contexts import FooAccounts


@instruction(discriminator=[1, 2, 3, 4, 5, 6, 7, 8])
def instr(ctx: Context[FooAccounts], n: int) -> int:
    assert n == 10
    return n
