from __future__ import annotations

from typing import Dict

# (atomic number, symbol, standard atomic weight g/mol)
_PERIODIC_TABLE = (
    (1, "H", 1.0079), (2, "He", 4.0026), (3, "Li", 6.941), (4, "Be", 9.0122),
    (5, "B", 10.811), (6, "C", 12.0107), (7, "N", 14.0067), (8, "O", 15.9994),
    (9, "F", 18.9984), (10, "Ne", 20.1797), (11, "Na", 22.9897), (12, "Mg", 24.305),
    (13, "Al", 26.9815), (14, "Si", 28.0855), (15, "P", 30.9738), (16, "S", 32.065),
    (17, "Cl", 35.453), (18, "Ar", 39.948), (19, "K", 39.0983), (20, "Ca", 40.078),
    (21, "Sc", 44.9559), (22, "Ti", 47.867), (23, "V", 50.9415), (24, "Cr", 51.9961),
    (25, "Mn", 54.938), (26, "Fe", 55.845), (27, "Co", 58.9332), (28, "Ni", 58.6934),
    (29, "Cu", 63.546), (30, "Zn", 65.39), (31, "Ga", 69.723), (32, "Ge", 72.64),
    (33, "As", 74.9216), (34, "Se", 78.96), (35, "Br", 79.904), (36, "Kr", 83.8),
    (37, "Rb", 85.4678), (38, "Sr", 87.62), (39, "Y", 88.9059), (40, "Zr", 91.224),
    (41, "Nb", 92.9064), (42, "Mo", 95.94), (43, "Tc", 98.0), (44, "Ru", 101.07),
    (45, "Rh", 102.9055), (46, "Pd", 106.42), (47, "Ag", 107.8682), (48, "Cd", 112.411),
    (49, "In", 114.818), (50, "Sn", 118.71), (51, "Sb", 121.76), (52, "Te", 127.6),
    (53, "I", 126.9045), (54, "Xe", 131.293), (55, "Cs", 132.9055), (56, "Ba", 137.327),
    (57, "La", 138.9055), (58, "Ce", 140.116), (59, "Pr", 140.9077), (60, "Nd", 144.24),
    (61, "Pm", 145.0), (62, "Sm", 150.36), (63, "Eu", 151.964), (64, "Gd", 157.25),
    (65, "Tb", 158.9253), (66, "Dy", 162.5), (67, "Ho", 164.9303), (68, "Er", 167.259),
    (69, "Tm", 168.9342), (70, "Yb", 173.04), (71, "Lu", 174.967), (72, "Hf", 178.49),
    (73, "Ta", 180.9479), (74, "W", 183.84), (75, "Re", 186.207), (76, "Os", 190.23),
    (77, "Ir", 192.217), (78, "Pt", 195.078), (79, "Au", 196.9665), (80, "Hg", 200.59),
    (81, "Tl", 204.3833), (82, "Pb", 207.2), (83, "Bi", 208.9804), (84, "Po", 209.0),
    (85, "At", 210.0), (86, "Rn", 222.0), (87, "Fr", 223.0), (88, "Ra", 226.0),
    (89, "Ac", 227.0), (90, "Th", 232.0381), (91, "Pa", 231.0359), (92, "U", 238.0289),
    (93, "Np", 237.0), (94, "Pu", 244.0), (95, "Am", 243.0), (96, "Cm", 247.0),
    (97, "Bk", 247.0), (98, "Cf", 251.0), (99, "Es", 252.0), (100, "Fm", 257.0),
    (101, "Md", 258.0), (102, "No", 259.0), (103, "Lr", 262.0), (104, "Rf", 261.0),
    (105, "Db", 262.0), (106, "Sg", 266.0), (107, "Bh", 264.0), (108, "Hs", 277.0),
    (109, "Mt", 268.0), (110, "Ds", 281.0), (111, "Rg", 272.0), (112, "Cn", 285.0),
    (113, "Nh", 284.0), (114, "Fl", 289.0), (115, "Mc", 288.0), (116, "Lv", 293.0),
    (117, "Ts", 294.0), (118, "Og", 294.0),
)

ATOMIC_NUMBERS: Dict[str, int] = {sym: z for z, sym, _ in _PERIODIC_TABLE}
ATOMIC_WEIGHTS: Dict[str, float] = {sym: w for _, sym, w in _PERIODIC_TABLE}


def is_atom(symbol: str) -> bool:
    return symbol in ATOMIC_WEIGHTS


def atomic_weight(symbol: str) -> float:
    return ATOMIC_WEIGHTS[symbol]
