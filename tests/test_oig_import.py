"""Tests for the OIG LEIE list import."""

from datetime import date

import httpx
import pytest

from credentialing.core.exceptions import RegistryLookupError, ValidationError
from credentialing.services import oig_import_service

HEADER = "LASTNAME,FIRSTNAME,MIDNAME,BUSNAME,GENERAL,SPECIALTY,UPIN,NPI,DOB,ADDRESS,CITY,STATE,ZIP,EXCLTYPE,EXCLDATE,REINDATE,WAIVERDATE,WVRSTATE"
ROWS = [
    "DOE,JANE,Q,,INDIVIDUAL,PSYCHOLOGIST,,1234567893,19700101,1 MAIN ST,FRESNO,CA,93701,1128a1,20190520,00000000,00000000,",
    "Müller,Renée,,,INDIVIDUAL,NURSE,,0000000000,19800101,2 OAK ST,RENO,NV,89501,1128b4,20200101,20230315,00000000,",
    "ROE,JOHN,,,INDIVIDUAL,,,,,,,TX,,1128a2,2021-13-45,00000000,00000000,",
]


def _csv(*rows):
    return "\n".join([HEADER, *rows]) + "\n"


def test_parse_normalizes_rows_and_skips_bad_dates():
    rows, skipped = oig_import_service.parse_oig_csv("\ufeff" + _csv(*ROWS))

    assert skipped == 1
    assert len(rows) == 2
    jane, renee = rows
    assert jane["last_name"] == "DOE"
    assert jane["npi"] == "1234567893"
    assert jane["exclusion_date"] == date(2019, 5, 20)
    assert jane["reinstatement_date"] is None
    assert renee["last_name"] == "MULLER"
    assert renee["first_name"] == "RENEE"
    assert renee["npi"] is None
    assert renee["reinstatement_date"] == date(2023, 3, 15)


def test_missing_required_columns():
    with pytest.raises(ValidationError):
        oig_import_service.parse_oig_csv("LASTNAME,FIRSTNAME\nDOE,JANE\n")


def test_import_replaces_the_table(db):
    oig_import_service.import_csv(db, _csv(ROWS[0], ROWS[1]))
    result = oig_import_service.import_csv(db, _csv(ROWS[1]))

    assert (result.imported, result.skipped) == (1, 0)
    assert oig_import_service.count_exclusions(db) == 1


def test_empty_list_keeps_current_copy(db):
    oig_import_service.import_csv(db, _csv(ROWS[0]))
    with pytest.raises(ValidationError):
        oig_import_service.import_csv(db, _csv())
    assert oig_import_service.count_exclusions(db) == 1


async def test_refresh_downloads_and_imports(db):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=_csv(ROWS[0])))

    result = await oig_import_service.refresh_oig_list(
        db, url="https://oig.example/UPDATED.csv", transport=transport
    )

    assert result.imported == 1
    assert oig_import_service.count_exclusions(db) == 1


async def test_download_failure_raises_retryable_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))

    with pytest.raises(RegistryLookupError) as exc_info:
        await oig_import_service.download_csv("https://oig.example/UPDATED.csv", transport=transport)
    assert exc_info.value.retryable is True
