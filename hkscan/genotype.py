"""Genotype symbol model.

The number of true genotypes at a locus is limited by the number of founders
(K^2 ordered pairs). Observed genotype calls are far more varied: scoring
technologies produce ambiguous calls ("H or B"), aliases ("B", "BB") and
missing values. Each observed call is a :class:`GenotypeSymbolMapper`, i.e. a
named set of :class:`TrueGenotype` values plus the strings that encode it.

Mappers are created once per distinct symbol and every cell of a genotype
matrix holds a reference to the shared mapper, so memory is bounded by the
number of distinct symbols rather than by population size.

An encoding can be written as GENOTYPE lines, where numbers refer to founders::

    GENOTYPE NA,- as None
    GENOTYPE A as 0,0
    GENOTYPE B,BB as 1,1          # B and BB both represent 1,1
    GENOTYPE AB as 1,0            # phase known
    GENOTYPE AC,CA as 0,2 2,0     # phase unknown
    GENOTYPE AorB as 0,0 1,1
"""

from functools import total_ordering
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from hkscan.errors import DimensionMismatch, DuplicateSymbol, UnresolvedSymbol

NA_STRINGS = ("NA", "-", "")


@total_ordering
class TrueGenotype:
    """A pair of founder indices, one from each parent.

    Sorting follows the founder numbering: 0,0 < 0,1 < 1,0 < 1,1 < 2,0 ...
    """

    __slots__ = ("_founders",)

    def __init__(self, founder1: Union[int, str, "TrueGenotype"], founder2: Optional[int] = None):
        if isinstance(founder1, TrueGenotype):
            founders = founder1.founders
        elif isinstance(founder1, str):
            founders = self._parse(founder1)
        else:
            if founder2 is None:
                raise ValueError("TrueGenotype needs two founder indices")
            founders = (int(founder1), int(founder2))
        if founders[0] < 0 or founders[1] < 0:
            raise ValueError(f"Founder indices must be non-negative, got {founders}")
        object.__setattr__(self, "_founders", founders)

    @staticmethod
    def _parse(text: str) -> Tuple[int, int]:
        # "NA", "-" and "" are missing values, not true genotypes
        if text.strip() in NA_STRINGS:
            raise ValueError(f'Can not initialize genotype field with value "{text}"')
        fields = text.strip().split(",")
        if len(fields) != 2:
            raise ValueError(f'Can not parse true genotype field with value "{text}"')
        try:
            return int(fields[0]), int(fields[1])
        except ValueError:
            raise ValueError(f'Can not parse true genotype field with value "{text}"')

    def __setattr__(self, name, value):
        raise AttributeError("TrueGenotype is immutable")

    @property
    def founders(self) -> Tuple[int, int]:
        return self._founders

    def homozygous(self) -> bool:
        return self._founders[0] == self._founders[1]

    def heterozygous(self) -> bool:
        return not self.homozygous()

    def reversed(self) -> "TrueGenotype":
        return TrueGenotype(self._founders[1], self._founders[0])

    def get_allele(self, allele_index: int) -> int:
        return self._founders[1] if allele_index else self._founders[0]

    def to_true_genotype(self) -> str:
        """Short form, e.g. (1,0) -> "1,0"."""
        return f"{self._founders[0]},{self._founders[1]}"

    def __eq__(self, other):
        if not isinstance(other, TrueGenotype):
            return NotImplemented
        return self._founders == other._founders

    def __lt__(self, other):
        if not isinstance(other, TrueGenotype):
            return NotImplemented
        return self._founders < other._founders

    def __hash__(self):
        return hash(self._founders)

    def __str__(self):
        return f"({self.to_true_genotype()})"

    def __repr__(self):
        return f"TrueGenotype({self._founders[0]}, {self._founders[1]})"

    def __reduce__(self):
        return (TrueGenotype, self._founders)


class GenotypeSymbolMapper:
    """An observed genotype: a name, its encodings and the true genotypes it covers.

    :param name: Display name, also the first input encoding
    :param genotypes: True genotypes covered by the symbol; empty means NA
    :param encodings: Additional aliases
    :param phase_known: When False, adding (a,b) also adds (b,a)
    """

    def __init__(self, name: str, genotypes: Iterable[TrueGenotype] = (),
                 encodings: Iterable[str] = (), phase_known: bool = True):
        self.name = name
        self.encodings: List[str] = []
        self.genotypes: List[TrueGenotype] = []
        self.phase_known = phase_known
        self.add_encoding(name)
        for code in encodings:
            self.add_encoding(code)
        for g in genotypes:
            self.add(g)

    def add_encoding(self, code: str):
        if code not in self.encodings:
            self.encodings.append(code)

    def add(self, g: TrueGenotype) -> TrueGenotype:
        """Add a true genotype unless an equal one is stored; return the stored one."""
        for m in self.genotypes:
            if m == g:
                return m
        self.genotypes.append(g)
        if not self.phase_known:
            self.add(g.reversed())
        return g

    def extend(self, other: "GenotypeSymbolMapper") -> "GenotypeSymbolMapper":
        for g in other.genotypes:
            self.add(g)
        return self

    def __iadd__(self, other):
        if isinstance(other, GenotypeSymbolMapper):
            return self.extend(other)
        self.add(other)
        return self

    def match(self, item: Union[str, TrueGenotype]) -> bool:
        if isinstance(item, TrueGenotype):
            return item in self.genotypes
        return item in self.encodings

    @property
    def is_na(self) -> bool:
        return len(self.genotypes) == 0

    def canonical_alias(self) -> str:
        return self.name

    def to_encoding_string(self) -> str:
        """Encodings joined by spaces, e.g. "H AB BA"."""
        return " ".join(self.encodings)

    def to_true_genotypes(self) -> str:
        """True genotypes as a string, e.g. "0,0 1,0"."""
        if self.is_na:
            return "None"
        return " ".join(g.to_true_genotype() for g in self.genotypes)

    def __len__(self):
        return len(self.genotypes)

    def __iter__(self):
        return iter(self.genotypes)

    def __eq__(self, other):
        if not isinstance(other, GenotypeSymbolMapper):
            return NotImplemented
        return sorted(self.genotypes) == sorted(other.genotypes)

    # mappers are shared by reference and used as cache keys by identity
    __hash__ = object.__hash__

    def __str__(self):
        if self.is_na:
            return "[NA]"
        return "[" + ", ".join(str(g) for g in self.genotypes) + "]"

    def __repr__(self):
        return f"GenotypeSymbolMapper({self.name!r}, {self})"


class ObservedGenotypeRegistry:
    """All observed genotype symbols of a dataset (or of a single marker).

    Symbols are accumulated in registration order and never removed. The
    registry is filled by parsers before any computation and only read
    afterwards.
    """

    def __init__(self, mappers: Iterable[GenotypeSymbolMapper] = ()):
        self.mappers: List[GenotypeSymbolMapper] = []
        self._by_alias = {}
        self._na: Optional[GenotypeSymbolMapper] = None
        for m in mappers:
            self.add(m)

    def add(self, mapper: GenotypeSymbolMapper) -> GenotypeSymbolMapper:
        if any(m is mapper for m in self.mappers):
            return mapper
        for code in mapper.encodings:
            owner = self._by_alias.get(code)
            if owner is not None:
                raise DuplicateSymbol(
                    f'Genotype alias "{code}" of {mapper.name} is already used by {owner.name}'
                )
        self.mappers.append(mapper)
        for code in mapper.encodings:
            self._by_alias[code] = mapper
        return mapper

    def __iadd__(self, mapper: GenotypeSymbolMapper):
        self.add(mapper)
        return self

    def _missing(self) -> GenotypeSymbolMapper:
        for m in self.mappers:
            if m.is_na:
                return m
        if self._na is None:
            self._na = GenotypeSymbolMapper("NA", encodings=["-"])
        return self._na

    def decode(self, s: str) -> GenotypeSymbolMapper:
        """Decode an input string to an observed genotype.

        Aliases are tried first in registration order, next true genotype
        literals such as "1,0". The first matching symbol is returned. NA
        strings always decode to the missing symbol.

        :raises UnresolvedSymbol: when nothing matches
        """
        s = s.strip()
        for m in self.mappers:
            if m.match(s):
                return m
        if s in NA_STRINGS:
            return self._missing()
        try:
            geno = TrueGenotype(s)
        except ValueError:
            raise UnresolvedSymbol(s)
        for m in self.mappers:
            if not m.is_na and m.match(geno):
                return m
        raise UnresolvedSymbol(s)

    def __len__(self):
        return len(self.mappers)

    def __iter__(self):
        return iter(self.mappers)

    def __str__(self):
        return "[" + ", ".join(str(m) for m in self.mappers) + "]"


def parse_observed_genotype_string(s: str) -> Tuple[List[str], List[TrueGenotype]]:
    """Parse a line of the form ``GENOTYPE name1,name2 as 0,0 1,1 [# comment]``.

    :return: aliases (first is the name) and true genotypes; "None" yields no genotypes
    """
    tokens = s.split()
    if not tokens or tokens[0] != "GENOTYPE":
        raise ValueError(f"Expected GENOTYPE for {s}")
    if "as" not in tokens:
        raise ValueError(f"Expected 'as' for {s}")
    sep = tokens.index("as")
    names = [n for name in tokens[1:sep] for n in name.split(",") if n]
    if not names:
        raise ValueError(f"Expected a genotype name for {s}")
    genotypes = []
    for tt in tokens[sep + 1:]:
        if tt.startswith("#") or tt == "None":
            break
        alleles = tt.split(",")
        if len(alleles) != 2:
            raise ValueError(f"Malformed genotype in {s}")
        genotypes.append(TrueGenotype(int(alleles[0]), int(alleles[1])))
    return names, genotypes


class EncodedCross:
    """Observed genotypes defined by a list of GENOTYPE lines."""

    def __init__(self, lines: Iterable[str]):
        self.mappers = {}
        for line in lines:
            if not line.strip():
                continue
            self.add(line)

    def add(self, line: str) -> GenotypeSymbolMapper:
        names, genotypes = parse_observed_genotype_string(line.strip())
        name = names[0]
        if name in self.mappers:
            raise DuplicateSymbol(f"Duplicate {line.strip()}")
        mapper = GenotypeSymbolMapper(name, genotypes, encodings=names[1:])
        self.mappers[name] = mapper
        return mapper

    def __getitem__(self, name: str) -> GenotypeSymbolMapper:
        return self.mappers[name]

    def registry(self) -> ObservedGenotypeRegistry:
        return ObservedGenotypeRegistry(self.mappers.values())


def read_genotype_symbols(path: str) -> ObservedGenotypeRegistry:
    """Read GENOTYPE lines from a file; other lines are ignored."""
    with open(path, "r", encoding="utf-8") as handle:
        lines = [line for line in handle if line.lstrip().startswith("GENOTYPE")]
    if not lines:
        raise ValueError(f"No GENOTYPE lines found in {path}")
    return EncodedCross(lines).registry()


def parse_genotype_ids(cross: str, genotype_ids: Optional[str] = None,
                       na_ids: str = "NA -") -> ObservedGenotypeRegistry:
    """Build the symbol table of a standard cross from a list of symbol names.

    F2 takes "A H B D C" where D is H-or-A and C is H-or-B; BC takes "A H";
    RISELF and RISIB take "A B".
    """
    cross = cross.upper()
    defaults = {"F2": "A H B D C", "BC": "A H", "RISELF": "A B", "RISIB": "A B"}
    if cross not in defaults:
        raise ValueError(f"Unknown cross type: {cross}")
    ids = (genotype_ids or defaults[cross]).split()
    needed = len(defaults[cross].split())
    if len(ids) < needed:
        raise ValueError(
            f"Need to provide {needed} genotype symbols (eg, '{defaults[cross]}')."
        )

    aa = TrueGenotype(0, 0)
    ab = TrueGenotype(0, 1)
    bb = TrueGenotype(1, 1)
    na_split = na_ids.split()
    symbols = ObservedGenotypeRegistry()
    symbols += GenotypeSymbolMapper(na_split[0] if na_split else "NA", encodings=na_split[1:])
    if cross == "F2":
        symbols += GenotypeSymbolMapper(ids[0], [aa])
        symbols += GenotypeSymbolMapper(ids[2], [bb])
        symbols += GenotypeSymbolMapper(ids[1], [ab], phase_known=False)
        symbols += GenotypeSymbolMapper(ids[3], [ab, aa], phase_known=False)
        symbols += GenotypeSymbolMapper(ids[4], [ab, bb], phase_known=False)
    elif cross == "BC":
        symbols += GenotypeSymbolMapper(ids[0], [aa])
        symbols += GenotypeSymbolMapper(ids[1], [ab], phase_known=False)
    else:
        symbols += GenotypeSymbolMapper(ids[0], [aa])
        symbols += GenotypeSymbolMapper(ids[1], [bb])
    return symbols


GenotypeMatrix = List[List[GenotypeSymbolMapper]]


def convert_to_symbol_matrix(rows: Sequence[Sequence[str]],
                             registry: ObservedGenotypeRegistry) -> GenotypeMatrix:
    """Decode a matrix of genotype strings (individuals x markers) to symbol references."""
    matrix = []
    for i, row in enumerate(rows):
        decoded = []
        for j, symbol in enumerate(row):
            try:
                decoded.append(registry.decode(str(symbol)))
            except UnresolvedSymbol as e:
                raise UnresolvedSymbol(e.symbol, dataset=f"individual {i + 1}, marker {j + 1}")
        matrix.append(decoded)
    return matrix


def omit_ind_from_genotypes(geno: GenotypeMatrix, to_omit: Sequence[bool]) -> GenotypeMatrix:
    if len(geno) != len(to_omit):
        raise DimensionMismatch(
            f"no. individuals in geno ({len(geno)}) doesn't match length of to_omit ({len(to_omit)})"
        )
    return [row for row, omit in zip(geno, to_omit) if not omit]
