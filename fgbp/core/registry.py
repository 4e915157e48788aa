"""
fgbp/core/registry.py

ID registry mapping variable and factor names to graph handles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from fgbp.core.errors import ConstructionError


@dataclass
class IDRegistry:
    """
    Registry for mapping names to node and factor handles.

    Names are sorted before handles are assigned, so two registries built
    from the same model always agree.

    Attributes:
        var_name_to_id: Variable name -> node handle
        fac_name_to_id: Factor name -> factor handle
        id_to_var_name: Node handle -> variable name
        id_to_fac_name: Factor handle -> factor name
    """
    var_name_to_id: Dict[str, int]
    fac_name_to_id: Dict[str, int]
    id_to_var_name: List[str]
    id_to_fac_name: List[str]

    @staticmethod
    def build(var_domains: Dict[str, int], factors: Dict[str, Tuple[str, ...]]) -> "IDRegistry":
        """
        Build a registry from variable domains and factor scopes.

        Args:
            var_domains: Map from variable name to domain size
            factors: Map from factor name to scope (tuple of variable names)

        Returns:
            IDRegistry with assigned handles
        """
        var_names = sorted(var_domains.keys())
        fac_names = sorted(factors.keys())

        for fname in fac_names:
            for v in factors[fname]:
                if v not in var_domains:
                    raise ConstructionError(f"factor {fname!r} references unknown variable {v!r}")

        return IDRegistry(
            var_name_to_id={n: i for i, n in enumerate(var_names)},
            fac_name_to_id={n: i for i, n in enumerate(fac_names)},
            id_to_var_name=var_names,
            id_to_fac_name=fac_names,
        )

    def var_id(self, name: str) -> int:
        """Get node handle by variable name."""
        if name not in self.var_name_to_id:
            raise ConstructionError(f"unknown variable {name!r}")
        return self.var_name_to_id[name]

    def var_name(self, vid: int) -> str:
        return self.id_to_var_name[vid]

    def fac_name(self, fid: int) -> str:
        return self.id_to_fac_name[fid]

    def var_ids(self, names: Iterable[str]) -> Tuple[int, ...]:
        """Map a scope of variable names to node handles, keeping order."""
        return tuple(self.var_id(n) for n in names)
