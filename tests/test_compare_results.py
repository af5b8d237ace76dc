import sqlite3

import yaml

from scripts.compare_results import load_results, main, write_results
from src.epathway_scraper.database import DevelopmentApplicationDatabase
from src.epathway_scraper.models import DevelopmentApplication


def build_database(path, references, *, date_scraped="2024-02-20"):
    with DevelopmentApplicationDatabase(path) as db:
        for reference in references:
            db.upsert(
                DevelopmentApplication(
                    council_reference=reference,
                    address="12 Smith St Nuriootpa SA 5355",
                    description="Fence",
                    info_url="https://epayments.barossa.sa.gov.au/ePathway/Production/Web/default.aspx",
                    date_scraped=date_scraped,
                    date_received="2024-01-03",
                )
            )
    return path


def test_load_results_drops_scrape_date(tmp_path):
    path = build_database(tmp_path / "a.sqlite", ["580/002/24", "10/2024/1"])

    records = load_results(path)

    assert [record["council_reference"] for record in records] == ["10/2024/1", "580/002/24"]
    assert "date_scraped" not in records[0]
    assert "date_scraped" in load_results(path, ignore_volatile=False)[0]


def test_write_results_produces_yaml(tmp_path):
    path = build_database(tmp_path / "a.sqlite", ["580/002/24"])
    output = tmp_path / "out" / "results.yml"

    write_results(load_results(path), output)

    with open(output, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    assert data[0]["council_reference"] == "580/002/24"
    assert data[0]["address"] == "12 Smith St Nuriootpa SA 5355"


def test_main_reports_success_across_scrape_dates(tmp_path, capsys):
    baseline = build_database(tmp_path / "a.sqlite", ["580/002/24"], date_scraped="2024-02-19")
    candidate = build_database(tmp_path / "b.sqlite", ["580/002/24"])

    assert main([str(baseline), str(candidate), "--output-dir", str(tmp_path / "out")]) == 0
    assert "Succeeded" in capsys.readouterr().out
    assert (tmp_path / "out" / "results_baseline.yml").exists()

    assert main([str(baseline), str(candidate), "--include-scrape-date"]) == 1


def test_main_reports_missing_applications(tmp_path, capsys):
    baseline = build_database(tmp_path / "a.sqlite", ["580/002/24", "580/003/24"])
    candidate = build_database(tmp_path / "b.sqlite", ["580/002/24"])

    assert main([str(baseline), str(candidate)]) == 1
    assert "Failed" in capsys.readouterr().out


def test_main_requires_existing_databases(tmp_path):
    assert main([str(tmp_path / "missing.sqlite"), str(tmp_path / "other.sqlite")]) == 1


def schema_objects(path):
    conn = sqlite3.connect(str(path))
    try:
        return sorted(conn.execute("SELECT type, name FROM sqlite_master").fetchall())
    finally:
        conn.close()


def test_load_results_leaves_database_untouched(tmp_path):
    path = tmp_path / "legacy.sqlite"
    conn = sqlite3.connect(str(path))
    conn.execute(
        "create table [data] ([council_reference] text primary key, [address] text, [description] text, "
        "[info_url] text, [date_scraped] text, [date_received] text)"
    )
    conn.execute(
        "insert into [data] values ('580/002/24', '4 High St Tanunda SA 5352', 'Shed', "
        "'https://epayments.barossa.sa.gov.au/', '2024-02-20', '2024-01-15')"
    )
    conn.commit()
    conn.close()
    before = schema_objects(path)
    contents = path.read_bytes()

    records = load_results(path)

    assert [record["council_reference"] for record in records] == ["580/002/24"]
    assert schema_objects(path) == before
    assert path.read_bytes() == contents


def test_load_results_without_data_table(tmp_path):
    path = tmp_path / "empty.sqlite"
    sqlite3.connect(str(path)).close()

    assert load_results(path) == []
    assert schema_objects(path) == []
