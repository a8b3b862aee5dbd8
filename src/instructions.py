"""
IC10 Instruction Set
Every opcode with the operand kinds it takes
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from operands import OperandKind

R = OperandKind.REGISTER
V = OperandKind.VALUE
L = OperandKind.LINE
D = OperandKind.DEVICE
LT = OperandKind.LOGIC_TYPE
ST = OperandKind.SLOT_TYPE
BM = OperandKind.BATCH_MODE
RM = OperandKind.REAGENT_MODE
N = OperandKind.NAME
T = OperandKind.TARGET


class Opcode(Enum):
    # Misc
    ALIAS = "alias"
    LABEL = "label"
    DEFINE = "define"
    MOVE = "move"
    SLEEP = "sleep"
    YIELD = "yield"
    HCF = "hcf"

    # Arithmetic
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    MOD = "mod"
    POW = "pow"
    MAX = "max"
    MIN = "min"
    ATAN2 = "atan2"
    LERP = "lerp"
    ABS = "abs"
    CEIL = "ceil"
    FLOOR = "floor"
    ROUND = "round"
    TRUNC = "trunc"
    SQRT = "sqrt"
    EXP = "exp"
    LOG = "log"
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ASIN = "asin"
    ACOS = "acos"
    ATAN = "atan"
    RAND = "rand"

    # Select / compare
    SELECT = "select"
    SLT = "slt"
    SGT = "sgt"
    SLE = "sle"
    SGE = "sge"
    SEQ = "seq"
    SNE = "sne"
    SLTZ = "sltz"
    SGTZ = "sgtz"
    SLEZ = "slez"
    SGEZ = "sgez"
    SEQZ = "seqz"
    SNEZ = "snez"
    SAP = "sap"
    SNA = "sna"
    SAPZ = "sapz"
    SNAZ = "snaz"
    SNAN = "snan"
    SNANZ = "snanz"
    SDSE = "sdse"
    SDNS = "sdns"

    # Bitwise
    AND = "and"
    OR = "or"
    XOR = "xor"
    NOR = "nor"
    NOT = "not"
    SLL = "sll"
    SLA = "sla"
    SRL = "srl"
    SRA = "sra"
    EXT = "ext"
    INS = "ins"

    # Stack / memory
    PUSH = "push"
    POP = "pop"
    PEEK = "peek"
    POKE = "poke"
    GET = "get"
    GETD = "getd"
    PUT = "put"
    PUTD = "putd"
    CLR = "clr"
    CLRD = "clrd"

    # Device logic
    L = "l"
    LD = "ld"
    S = "s"
    SD = "sd"
    LS = "ls"
    SS = "ss"
    LR = "lr"
    RMAP = "rmap"

    # Batch
    LB = "lb"
    LBN = "lbn"
    LBS = "lbs"
    LBNS = "lbns"
    SB = "sb"
    SBN = "sbn"
    SBS = "sbs"

    # Jumps
    J = "j"
    JAL = "jal"
    JR = "jr"

    # Two-operand branches
    BEQ = "beq"
    BNE = "bne"
    BLT = "blt"
    BGT = "bgt"
    BLE = "ble"
    BGE = "bge"
    BEQAL = "beqal"
    BNEAL = "bneal"
    BLTAL = "bltal"
    BGTAL = "bgtal"
    BLEAL = "bleal"
    BGEAL = "bgeal"
    BREQ = "breq"
    BRNE = "brne"
    BRLT = "brlt"
    BRGT = "brgt"
    BRLE = "brle"
    BRGE = "brge"

    # Zero branches
    BEQZ = "beqz"
    BNEZ = "bnez"
    BLTZ = "bltz"
    BGTZ = "bgtz"
    BLEZ = "blez"
    BGEZ = "bgez"
    BEQZAL = "beqzal"
    BNEZAL = "bnezal"
    BLTZAL = "bltzal"
    BGTZAL = "bgtzal"
    BLEZAL = "blezal"
    BGEZAL = "bgezal"
    BREQZ = "breqz"
    BRNEZ = "brnez"
    BRLTZ = "brltz"
    BRGTZ = "brgtz"
    BRLEZ = "brlez"
    BRGEZ = "brgez"

    # Approximate branches
    BAP = "bap"
    BNA = "bna"
    BAPAL = "bapal"
    BNAAL = "bnaal"
    BRAP = "brap"
    BRNA = "brna"
    BAPZ = "bapz"
    BNAZ = "bnaz"
    BAPZAL = "bapzal"
    BNAZAL = "bnazal"
    BRAPZ = "brapz"
    BRNAZ = "brnaz"

    # NaN branches
    BNAN = "bnan"
    BRNAN = "brnan"

    # Device branches
    BDSE = "bdse"
    BDNS = "bdns"
    BDSEAL = "bdseal"
    BDNSAL = "bdnsal"
    BRDSE = "brdse"
    BRDNS = "brdns"
    BDNVL = "bdnvl"
    BDNVS = "bdnvs"


_RAB = (R, V, V)
_RA = (R, V)

SIGNATURES: Dict[Opcode, Tuple[OperandKind, ...]] = {
    Opcode.ALIAS: (N, T),
    Opcode.LABEL: (N, T),
    Opcode.DEFINE: (N, V),
    Opcode.MOVE: _RA,
    Opcode.SLEEP: (V,),
    Opcode.YIELD: (),
    Opcode.HCF: (),

    Opcode.LERP: (R, V, V, V),
    Opcode.RAND: (R,),

    Opcode.SELECT: (R, V, V, V),
    Opcode.SAP: (R, V, V, V),
    Opcode.SNA: (R, V, V, V),
    Opcode.SAPZ: _RAB,
    Opcode.SNAZ: _RAB,
    Opcode.SDSE: (R, D),
    Opcode.SDNS: (R, D),

    Opcode.NOT: _RA,
    Opcode.EXT: (R, V, V, V),
    Opcode.INS: (R, V, V, V),

    Opcode.PUSH: (V,),
    Opcode.POP: (R,),
    Opcode.PEEK: (R,),
    Opcode.POKE: (V, V),
    Opcode.GET: (R, D, V),
    Opcode.GETD: (R, V, V),
    Opcode.PUT: (D, V, V),
    Opcode.PUTD: (V, V, V),
    Opcode.CLR: (D,),
    Opcode.CLRD: (V,),

    Opcode.L: (R, D, LT),
    Opcode.LD: (R, V, LT),
    Opcode.S: (D, LT, V),
    Opcode.SD: (V, LT, V),
    Opcode.LS: (R, D, V, ST),
    Opcode.SS: (D, V, ST, V),
    Opcode.LR: (R, D, RM, V),
    Opcode.RMAP: (R, D, V),

    Opcode.LB: (R, V, LT, BM),
    Opcode.LBN: (R, V, V, LT, BM),
    Opcode.LBS: (R, V, V, ST, BM),
    Opcode.LBNS: (R, V, V, V, ST, BM),
    Opcode.SB: (V, LT, V),
    Opcode.SBN: (V, V, LT, V),
    Opcode.SBS: (V, V, ST, V),

    Opcode.J: (L,),
    Opcode.JAL: (L,),
    Opcode.JR: (L,),

    Opcode.BNAN: (V, L),
    Opcode.BRNAN: (V, L),
    Opcode.BDSE: (D, L),
    Opcode.BDNS: (D, L),
    Opcode.BDSEAL: (D, L),
    Opcode.BDNSAL: (D, L),
    Opcode.BRDSE: (D, L),
    Opcode.BRDNS: (D, L),
    Opcode.BDNVL: (D, LT, L),
    Opcode.BDNVS: (D, LT, L),
}

for _op in (Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV, Opcode.MOD, Opcode.POW,
            Opcode.MAX, Opcode.MIN, Opcode.ATAN2,
            Opcode.SLT, Opcode.SGT, Opcode.SLE, Opcode.SGE, Opcode.SEQ, Opcode.SNE,
            Opcode.AND, Opcode.OR, Opcode.XOR, Opcode.NOR,
            Opcode.SLL, Opcode.SLA, Opcode.SRL, Opcode.SRA):
    SIGNATURES[_op] = _RAB

for _op in (Opcode.ABS, Opcode.CEIL, Opcode.FLOOR, Opcode.ROUND, Opcode.TRUNC, Opcode.SQRT,
            Opcode.EXP, Opcode.LOG, Opcode.SIN, Opcode.COS, Opcode.TAN, Opcode.ASIN,
            Opcode.ACOS, Opcode.ATAN,
            Opcode.SLTZ, Opcode.SGTZ, Opcode.SLEZ, Opcode.SGEZ, Opcode.SEQZ, Opcode.SNEZ,
            Opcode.SNAN, Opcode.SNANZ):
    SIGNATURES[_op] = _RA

for _op in (Opcode.BEQ, Opcode.BNE, Opcode.BLT, Opcode.BGT, Opcode.BLE, Opcode.BGE,
            Opcode.BEQAL, Opcode.BNEAL, Opcode.BLTAL, Opcode.BGTAL, Opcode.BLEAL, Opcode.BGEAL,
            Opcode.BREQ, Opcode.BRNE, Opcode.BRLT, Opcode.BRGT, Opcode.BRLE, Opcode.BRGE):
    SIGNATURES[_op] = (V, V, L)

for _op in (Opcode.BEQZ, Opcode.BNEZ, Opcode.BLTZ, Opcode.BGTZ, Opcode.BLEZ, Opcode.BGEZ,
            Opcode.BEQZAL, Opcode.BNEZAL, Opcode.BLTZAL, Opcode.BGTZAL, Opcode.BLEZAL, Opcode.BGEZAL,
            Opcode.BREQZ, Opcode.BRNEZ, Opcode.BRLTZ, Opcode.BRGTZ, Opcode.BRLEZ, Opcode.BRGEZ,
            Opcode.BAPZ, Opcode.BNAZ, Opcode.BAPZAL, Opcode.BNAZAL, Opcode.BRAPZ, Opcode.BRNAZ):
    SIGNATURES[_op] = (V, V, L) if _op.value.startswith(("bapz", "bnaz", "brapz", "brnaz")) else (V, L)

for _op in (Opcode.BAP, Opcode.BNA, Opcode.BAPAL, Opcode.BNAAL, Opcode.BRAP, Opcode.BRNA):
    SIGNATURES[_op] = (V, V, V, L)

del _op

_BY_NAME: Dict[str, Opcode] = {op.value: op for op in Opcode}


def lookup_opcode(name: str) -> Optional[Opcode]:
    return _BY_NAME.get(name)
