##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `chembl_queries.py` module.
"""

import logging

from mychembl.query.chembl_queries import (
    ACTIVITY_HEADERS,
    MOLECULE_HEADERS,
    SIMILARITY_QUERY,
    SUBSTRUCTURE_QUERY,
    get_activities,
    get_molecule,
    is_valid_smiles,
    similar_molecules,
    substructure_search,
)


ASPIRIN = "CC(=O)Oc1ccccc1C(=O)O"


def cursor_of(connection: "MagicMock") -> "MagicMock":  # noqa: F821
    """Returns the cursor a mocked connection hands out."""
    return connection.cursor.return_value.__enter__.return_value


def test_is_valid_smiles(mock_connection: "MagicMock"):  # noqa: F821
    """
    Test that SMILES validity is asked of the chemistry extension.

    :param mock_connection: A mocked `psycopg2` connection
    """
    cursor = cursor_of(mock_connection)
    cursor.fetchone.return_value = (False,)
    assert not is_valid_smiles(mock_connection, "C1CC")
    cursor.execute.assert_called_once_with("SELECT is_valid_smiles(%(smiles)s::cstring)", {"smiles": "C1CC"})


def test_get_molecule(mock_connection: "MagicMock"):  # noqa: F821
    """
    Test that identifiers are upper-cased and rows are returned with their headers.

    :param mock_connection: A mocked `psycopg2` connection
    """
    cursor = cursor_of(mock_connection)
    cursor.fetchall.return_value = [("CHEMBL25", "ASPIRIN", 4, ASPIRIN)]
    headers, rows = get_molecule(mock_connection, "chembl25")
    assert headers == MOLECULE_HEADERS
    assert rows == [("CHEMBL25", "ASPIRIN", 4, ASPIRIN)]
    assert cursor.execute.call_args.args[1] == {"chembl_id": "CHEMBL25"}


def test_similar_molecules(mock_connection: "MagicMock"):  # noqa: F821
    """
    Test that the similarity query receives the threshold and limit.

    :param mock_connection: A mocked `psycopg2` connection
    """
    cursor = cursor_of(mock_connection)
    cursor.fetchone.return_value = (True,)
    cursor.fetchall.return_value = [("CHEMBL25", "ASPIRIN", 1.0, ASPIRIN)]

    _, rows = similar_molecules(mock_connection, ASPIRIN, threshold=0.8, limit=5)

    assert rows == [("CHEMBL25", "ASPIRIN", 1.0, ASPIRIN)]
    cursor.execute.assert_called_with(SIMILARITY_QUERY, {"smiles": ASPIRIN, "threshold": 0.8, "limit": 5})


def test_invalid_smiles_returns_no_rows(mock_connection: "MagicMock", caplog: "Fixture"):  # noqa: F821
    """
    Test that an unparsable SMILES string skips the structure queries and is logged.

    :param mock_connection: A mocked `psycopg2` connection
    :param caplog: A built-in fixture from the pytest library to capture logs
    """
    caplog.set_level(logging.WARNING)
    cursor = cursor_of(mock_connection)
    cursor.fetchone.return_value = (False,)

    assert similar_molecules(mock_connection, "not-a-smiles")[1] == []
    assert substructure_search(mock_connection, "not-a-smiles")[1] == []
    assert cursor.execute.call_count == 2
    assert "'not-a-smiles' is not a valid SMILES string." in caplog.text


def test_substructure_search(mock_connection: "MagicMock"):  # noqa: F821
    """
    Test that the substructure query receives the SMILES and limit.

    :param mock_connection: A mocked `psycopg2` connection
    """
    cursor = cursor_of(mock_connection)
    cursor.fetchone.return_value = (True,)
    cursor.fetchall.return_value = []
    substructure_search(mock_connection, "c1ccccc1", limit=3)
    cursor.execute.assert_called_with(SUBSTRUCTURE_QUERY, {"smiles": "c1ccccc1", "limit": 3})


def test_get_activities(mock_connection: "MagicMock"):  # noqa: F821
    """
    Test that activities are looked up by upper-cased identifier with the given limit.

    :param mock_connection: A mocked `psycopg2` connection
    """
    cursor = cursor_of(mock_connection)
    row = ("CHEMBL674637", "CHEMBL221", "Cyclooxygenase-1", "Homo sapiens", "IC50", "=", 1700.0, "nM")
    cursor.fetchall.return_value = [row]
    headers, rows = get_activities(mock_connection, "chembl25", limit=1)
    assert headers == ACTIVITY_HEADERS
    assert rows == [row]
    assert cursor.execute.call_args.args[1] == {"chembl_id": "CHEMBL25", "limit": 1}
