"""
Domain identifiers shared by the builders and the explorer.

Key Concepts:
- Domain roots: "D" (expenditures) and "R" (revenue)
- Sections (RDFI): direction + section letter, e.g. "DF" = operating expenditures
- Detail (M52) ids are prefixed with "M52-", e.g. "M52-DF-51"
"""

EXPENDITURES = "D"
REVENUE = "R"

DF = "DF"  # Dépenses de fonctionnement
DI = "DI"  # Dépenses d'investissement
RF = "RF"  # Recettes de fonctionnement
RI = "RI"  # Recettes d'investissement

RDFI_SECTIONS = (DF, DI, RF, RI)

AGGREGATED_ROOT = "total"

M52_PREFIX = "M52-"

DETAIL_LINK_PREFIX = "#!/finance-details/"

DOMAIN_LABELS = {
    EXPENDITURES: "Dépenses",
    REVENUE: "Recettes",
}

SECTION_LABELS = {
    DF: "Dépense de fonctionnement",
    DI: "Dépense d'investissement",
    RF: "Recette de fonctionnement",
    RI: "Recette d'investissement",
}
