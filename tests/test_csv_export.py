import csv
import io

from csv_export import HEADERS, export_filename, export_results_csv, results_frame
from schemas import Shift, TipResult


def result(**extra):
    values = dict(employee_id=15, name="Harold Z", position="Server", hours=6.5, points=6.5,
                  digital_tips=75.0, cash_tips=15.125, total_tips=90.125)
    values.update(extra)
    return TipResult(**values)


def test_header_and_two_decimal_rows():
    text = export_results_csv([result()])

    header, row = text.splitlines()
    assert header.split(",") == HEADERS
    assert row == "15,Harold Z,Server,6.50,6.50,75.00,15.12,90.12"


def test_total_is_digital_plus_cash():
    row = export_results_csv([result(digital_tips=10.004, cash_tips=0.004)]).splitlines()[1]
    assert row.endswith(",10.00,0.00,10.01")


def test_fields_with_commas_and_quotes_are_escaped():
    text = export_results_csv([result(name='Smith, "Jo"', position="Bar\nback")])

    assert '"Smith, ""Jo"""' in text
    parsed = list(csv.reader(io.StringIO(text)))
    assert parsed[1][1] == 'Smith, "Jo"'
    assert parsed[1][2] == "Bar\nback"


def test_empty_results_still_have_header():
    assert export_results_csv([]) == ",".join(HEADERS) + "\n"


def test_filename_uses_date_and_type():
    assert export_filename(Shift(date="2024-03-01", type="Dinner")) == "tip-distribution-2024-03-01-Dinner.csv"


def test_results_frame_keeps_row_order_and_text_amounts():
    frame = results_frame([result(), result(employee_id=29, name="Deblyn N", cash_tips=5.0)])

    assert list(frame.columns) == HEADERS
    assert list(frame["Employee ID"]) == [15, 29]
    assert list(frame["Cash Tips ($)"]) == ["15.12", "5.00"]
