##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Read-only queries against the ChEMBL schema.

Molecules are built from `compound_structures.canonical_smiles` with the RDKit
cartridge functions at query time, so the queries only need SELECT on the
`public` tables. Every function returns a `(headers, rows)` tuple ready for
`tabulate`.
"""

import logging
from typing import List, Tuple


LOG = logging.getLogger("mychembl")

QueryResult = Tuple[List[str], List[Tuple]]

DEFAULT_LIMIT = 20
DEFAULT_THRESHOLD = 0.7

MOLECULE_HEADERS = ["chembl_id", "pref_name", "max_phase", "canonical_smiles"]
MOLECULE_QUERY = """
SELECT md.chembl_id, md.pref_name, md.max_phase, cs.canonical_smiles
FROM molecule_dictionary md
LEFT JOIN compound_structures cs ON cs.molregno = md.molregno
WHERE md.chembl_id = %(chembl_id)s
"""

VALID_SMILES_QUERY = "SELECT is_valid_smiles(%(smiles)s::cstring)"

SIMILARITY_HEADERS = ["chembl_id", "pref_name", "similarity", "canonical_smiles"]
SIMILARITY_QUERY = """
SELECT chembl_id, pref_name, similarity, canonical_smiles
FROM (
    SELECT md.chembl_id, md.pref_name, cs.canonical_smiles,
           tanimoto_sml(
               morganbv_fp(mol_from_smiles(cs.canonical_smiles::cstring)),
               morganbv_fp(mol_from_smiles(%(smiles)s::cstring))
           ) AS similarity
    FROM compound_structures cs
    JOIN molecule_dictionary md ON md.molregno = cs.molregno
) scored
WHERE similarity >= %(threshold)s
ORDER BY similarity DESC, chembl_id
LIMIT %(limit)s
"""

SUBSTRUCTURE_HEADERS = ["chembl_id", "pref_name", "canonical_smiles"]
SUBSTRUCTURE_QUERY = """
SELECT md.chembl_id, md.pref_name, cs.canonical_smiles
FROM compound_structures cs
JOIN molecule_dictionary md ON md.molregno = cs.molregno
WHERE mol_from_smiles(cs.canonical_smiles::cstring) @> mol_from_smiles(%(smiles)s::cstring)
ORDER BY md.chembl_id
LIMIT %(limit)s
"""

ACTIVITY_HEADERS = [
    "assay_chembl_id",
    "target_chembl_id",
    "target_name",
    "organism",
    "standard_type",
    "standard_relation",
    "standard_value",
    "standard_units",
]
ACTIVITY_QUERY = """
SELECT a.chembl_id, td.chembl_id, td.pref_name, td.organism,
       act.standard_type, act.standard_relation, act.standard_value, act.standard_units
FROM activities act
JOIN molecule_dictionary md ON md.molregno = act.molregno
JOIN assays a ON a.assay_id = act.assay_id
JOIN target_dictionary td ON td.tid = a.tid
WHERE md.chembl_id = %(chembl_id)s
ORDER BY act.activity_id
LIMIT %(limit)s
"""


def is_valid_smiles(connection, smiles: str) -> bool:
    """Asks the chemistry extension whether `smiles` parses."""
    with connection.cursor() as cursor:
        cursor.execute(VALID_SMILES_QUERY, {"smiles": smiles})
        return bool(cursor.fetchone()[0])


def get_molecule(connection, chembl_id: str) -> QueryResult:
    """
    Looks up a compound by its ChEMBL identifier.

    Args:
        connection: An open `psycopg2` connection to the ChEMBL database.
        chembl_id: A compound identifier such as `CHEMBL25`.

    Returns:
        The headers and at most one row: identifier, preferred name, maximum
        clinical phase and canonical SMILES.
    """
    with connection.cursor() as cursor:
        cursor.execute(MOLECULE_QUERY, {"chembl_id": chembl_id.upper()})
        return MOLECULE_HEADERS, cursor.fetchall()


def similar_molecules(
    connection, smiles: str, threshold: float = DEFAULT_THRESHOLD, limit: int = DEFAULT_LIMIT
) -> QueryResult:
    """
    Finds compounds whose Morgan fingerprint has a Tanimoto similarity of at least
    `threshold` to the fingerprint of `smiles`, most similar first.

    An unparsable `smiles` yields no rows.
    """
    if not is_valid_smiles(connection, smiles):
        LOG.warning(f"'{smiles}' is not a valid SMILES string.")
        return SIMILARITY_HEADERS, []
    with connection.cursor() as cursor:
        cursor.execute(SIMILARITY_QUERY, {"smiles": smiles, "threshold": threshold, "limit": limit})
        return SIMILARITY_HEADERS, cursor.fetchall()


def substructure_search(connection, smiles: str, limit: int = DEFAULT_LIMIT) -> QueryResult:
    """Finds compounds containing the substructure `smiles`. An unparsable `smiles` yields no rows."""
    if not is_valid_smiles(connection, smiles):
        LOG.warning(f"'{smiles}' is not a valid SMILES string.")
        return SUBSTRUCTURE_HEADERS, []
    with connection.cursor() as cursor:
        cursor.execute(SUBSTRUCTURE_QUERY, {"smiles": smiles, "limit": limit})
        return SUBSTRUCTURE_HEADERS, cursor.fetchall()


def get_activities(connection, chembl_id: str, limit: int = DEFAULT_LIMIT) -> QueryResult:
    """Lists the recorded activities of a compound with the assay and target they were measured on."""
    with connection.cursor() as cursor:
        cursor.execute(ACTIVITY_QUERY, {"chembl_id": chembl_id.upper(), "limit": limit})
        return ACTIVITY_HEADERS, cursor.fetchall()
