"""
Unit tests for formula evaluation, the sheet engine and chart projection.
"""

import unittest

from growthcanvas.charts import ChartProjector, parse_chart_number
from growthcanvas.exceptions import FormulaParseError, NoDataSourceError
from growthcanvas.formula import cell_address, parse_address, parse_formula
from growthcanvas.formula.parser import Binary, CellRef, Number
from growthcanvas.models import ChartConfig, Section, TableWidget, TextWidget
from growthcanvas.sheet_engine import SheetEngine, sanitize_cell


class TestAddresses(unittest.TestCase):
    """Test A1 address conversion."""

    def test_cell_address(self):
        self.assertEqual(cell_address(0, 0), "A1")
        self.assertEqual(cell_address(9, 25), "Z10")
        self.assertEqual(cell_address(0, 26), "AA1")

    def test_parse_address(self):
        self.assertEqual(parse_address("B3"), (2, 1))
        self.assertEqual(parse_address("$AA$1"), (0, 26))
        with self.assertRaises(ValueError):
            parse_address("A0")


class TestParser(unittest.TestCase):
    """Test formula parsing."""

    def test_precedence(self):
        tree = parse_formula("=1+A1*2")
        self.assertEqual(tree, Binary("+", Number(1.0), Binary("*", CellRef(0, 0), Number(2.0))))

    def test_malformed(self):
        for source in ("=1+", "=SUM(1", "=)", "=1 2", "=@"):
            with self.subTest(source=source):
                with self.assertRaises(FormulaParseError):
                    parse_formula(source)


class TestSheetEngine(unittest.TestCase):
    """Test sheet ingestion and computed values."""

    def setUp(self):
        self.engine = SheetEngine()

    def compute(self, grid):
        self.engine.update_sheet("t", grid)
        return self.engine.get_computed_data("t")

    def test_formula_round_trip(self):
        self.engine.update_sheet("t", [["Q1", "Q2"], ["10", "20"], ["=A2+B2", "=A2*2"]])

        self.assertEqual(self.engine.get_computed_value("t", 2, 0), "30")
        self.assertEqual(self.engine.get_computed_value("t", 2, 1), "20")
        self.assertEqual(self.engine.get_computed_value("t", 0, 0), "Q1")

    def test_semicolon_separators(self):
        data = self.compute([["1", "2"], ["=SUM(A1;B1)", "=SUM(A1,B1)"]])
        self.assertEqual(data[1], ["3", "3"])
        self.assertEqual(sanitize_cell("=IF(A1>1;1;0)"), "=IF(A1>1,1,0)")
        self.assertEqual(sanitize_cell("a;b"), "a;b")

    def test_update_is_idempotent(self):
        grid = [["1", "=A1*3"], ["=B1+A1", "=SUM(A1:B1)"]]
        self.engine.update_sheet("t", grid)
        first = self.engine.get_computed_data("t")
        self.engine.update_sheet("t", grid)

        self.assertEqual(self.engine.get_computed_data("t"), first)
        self.assertEqual(first, [["1", "3"], ["4", "4"]])

    def test_update_replaces_sheet(self):
        self.engine.update_sheet("t", [["1", "=A1+1"]])
        self.engine.update_sheet("t", [["5", "=A1+1"]])
        self.assertEqual(self.engine.get_computed_value("t", 0, 1), "6")

    def test_missing_sheet_and_out_of_range(self):
        self.assertEqual(self.engine.get_computed_value("nope", 0, 0), "")
        self.assertEqual(self.engine.get_computed_data("nope"), [])
        self.engine.update_sheet("t", [["1"]])
        self.assertEqual(self.engine.get_computed_value("t", 5, 5), "")
        self.assertEqual(self.engine.get_computed_value("t", -1, 0), "")

    def test_literals_keep_typed_text(self):
        data = self.compute([["20%", "$1,200", "=A1*2", "=B1/2"]])
        self.assertEqual(data[0], ["20%", "$1,200", "0.4", "600"])

    def test_errors_are_cell_scoped(self):
        data = self.compute([
            ["=1/0", "=FOO(1)", "=1+", "=A1:B1"],
            ['="a"+1', "=1+1", "=SQRT(-1)", "=VLOOKUP(9,A1:A1,1,FALSE)"],
        ])
        self.assertEqual(data[0], ["#DIV/0!", "#NAME?", "#ERROR!", "#VALUE!"])
        self.assertEqual(data[1], ["#VALUE!", "2", "#NUM!", "#N/A"])

    def test_cycles(self):
        data = self.compute([["=B1", "=A1", "=C1", "=A1+1"]])
        self.assertEqual(data[0], ["#CYCLE!", "#CYCLE!", "#CYCLE!", "#CYCLE!"])

    def test_long_reference_chain(self):
        rows = [[f"=A{row + 2}+1"] for row in range(499)] + [["1"]]

        self.engine.update_sheet("down", rows)
        self.assertEqual(self.engine.get_computed_value("down", 0, 0), "500")

        # Reading the tail first gives the same values
        self.engine.update_sheet("up", [list(row) for row in rows])
        for row in range(499, -1, -1):
            self.engine.get_computed_value("up", row, 0)
        self.assertEqual(self.engine.get_computed_data("up"), self.engine.get_computed_data("down"))

    def test_long_cycle(self):
        rows = [[f"=A{row + 2}"] for row in range(499)] + [["=A1"]]
        data = self.compute(rows)
        self.assertEqual({row[0] for row in data}, {"#CYCLE!"})

    def test_error_propagates_to_dependents(self):
        data = self.compute([["=1/0", "=A1+1", "=IFERROR(B1,\"n/a\")"]])
        self.assertEqual(data[0], ["#DIV/0!", "#DIV/0!", "n/a"])

    def test_sheets_are_isolated(self):
        self.engine.update_sheet("bad", [["=1/0"]])
        self.engine.update_sheet("good", [["2", "=A1^3"]])
        self.assertEqual(self.engine.get_computed_value("good", 0, 1), "8")
        self.engine.remove_sheet("bad")
        self.assertFalse(self.engine.has_sheet("bad"))

    def test_functions(self):
        data = self.compute([
            ["10", "20", "x", ""],
            ["=AVERAGE(A1:D1)", "=COUNT(A1:D1)", "=COUNTA(A1:D1)", "=MAX(A1:B1)-MIN(A1:B1)"],
            ['=IF(A1>5,"big","small")', '=CONCATENATE("Q",1)', '="Q"&A1', "=ROUND(2.345,2)"],
            ['=VLOOKUP("x",C1:D1,1,FALSE)', '=COUNTIF(A1:B1,">15")', "=SUMIF(A1:B1,\"<15\")", "=LEN(C1)"],
        ])
        self.assertEqual(data[1], ["15", "2", "3", "10"])
        self.assertEqual(data[2], ["big", "Q1", "Q10", "2.35"])
        self.assertEqual(data[3], ["x", "1", "10", "1"])

        self.engine.update_sheet("funnel", [
            ["Acq", "10", "x"],
            ["Ret", "20", "y"],
            ["Acq", "30", "x"],
            ["=INDEX(A1:C3,2,2)", '=MATCH("Ret",A1:A3,0)', "=MATCH(25,B1:B3)"],
            ['=SUMIFS(B1:B3,A1:A3,"Acq",C1:C3,"x")', '=COUNTIFS(A1:A3,"Acq",B1:B3,">15")',
             '=AVERAGEIF(A1:A3,"Acq",B1:B3)'],
            ['=IFS(B1>15,"high",B1>5,"mid")', '=MID("Growth",2,3)', '=FIND("t","Growth")'],
            ['=SUBSTITUTE("a-b-c","-","+")', '=SUBSTITUTE("a-b-c","-","+",2)', '=TEXT(1234.5,"#,##0.00")'],
            ['=TEXT(0.256,"0.0%")', '=TEXT(DATE(2024,3,5),"yyyy-mm-dd")', "=YEAR(DATE(2024,3,5))"],
            ["=MONTH(DATE(2024,14,5))", "=DAY(DATE(2024,3,5))", "=SUM(INDEX(B1:C3,0,1))"],
            ["=INDEX(A1:C3,4,1)", '=MATCH("Zzz",A1:A3,0)', "=IFS(FALSE,1)"],
            ['=FIND("z","Growth")', '=SEARCH("G","growth")', "=ISBLANK(D1)"],
        ])
        funnel = self.engine.get_computed_data("funnel")
        self.assertEqual(funnel[3], ["20", "2", "2"])
        self.assertEqual(funnel[4], ["40", "1", "20"])
        self.assertEqual(funnel[5], ["mid", "row", "5"])
        self.assertEqual(funnel[6], ["a+b+c", "a-b+c", "1,234.50"])
        self.assertEqual(funnel[7], ["25.6%", "2024-03-05", "2024"])
        self.assertEqual(funnel[8], ["2", "5", "60"])
        self.assertEqual(funnel[9], ["#REF!", "#N/A", "#N/A"])
        self.assertEqual(funnel[10], ["#VALUE!", "1", "TRUE"])

    def test_empty_reference_reads_as_zero(self):
        data = self.compute([["=Z9", "=", "=A1&\"\""]])
        self.assertEqual(data[0], ["0", "=", "0"])

    def test_function_catalog_order(self):
        catalog = self.engine.get_function_catalog()
        names = [info.name for info in catalog]
        documented = [info.name for info in catalog if info.description]

        self.assertEqual(documented, ["AVERAGE", "CONCATENATE", "COUNT", "IF", "MAX",
                                      "MIN", "NOW", "SUM", "TODAY", "VLOOKUP"])
        self.assertEqual(names[:len(documented)], documented)
        rest = names[len(documented):]
        self.assertEqual(rest, sorted(rest))
        self.assertIn("SQRT", rest)
        self.assertEqual(catalog[-1].description, "")

    def test_custom_function(self):
        self.engine.functions.register("double", lambda value: value * 2)
        self.assertEqual(self.compute([["=DOUBLE(4)"]])[0], ["8"])
        self.assertIn("DOUBLE", self.engine.get_registered_functions())


class TestChartProjection(unittest.TestCase):
    """Test projection of computed tables into chart records."""

    def setUp(self):
        self.engine = SheetEngine()
        self.projector = ChartProjector(self.engine)
        self.table = TableWidget(id="tbl", table_data=[
            ["Month", "Revenue", "Cost"],
            ["Jan", "$1,200", "=B2*0.5"],
            ["", "30%", "x"],
        ])
        self.sections = [Section(id="s1", title="Revenue", widgets=[self.table])]

    def test_records_use_computed_values(self):
        config = ChartConfig(table_id="tbl", x_axis_column=0, data_columns=[1, 2])

        records = self.projector.project(config, self.sections)

        self.assertEqual(records, [
            {"name": "Jan", "Revenue": 1200.0, "Cost": 600.0},
            {"name": "Row 2", "Revenue": 30.0, "Cost": 0.0},
        ])
        # Re-projection is a pure function of its inputs
        self.assertEqual(self.projector.project(config, self.sections), records)

    def test_no_data_source(self):
        sections = [Section(id="s1", title="Empty", widgets=[TextWidget(id="t")])]
        with self.assertRaises(NoDataSourceError):
            self.projector.project(ChartConfig(table_id="tbl"), sections)

    def test_unconfigured_or_missing_table(self):
        self.assertEqual(self.projector.project(None, self.sections), [])
        self.assertEqual(self.projector.project(ChartConfig(table_id="gone"), self.sections), [])

    def test_header_only_table(self):
        sections = [Section(id="s1", title="S", widgets=[TableWidget(id="tbl", table_data=[["A", "B"]])])]
        self.assertEqual(self.projector.project(ChartConfig(table_id="tbl", data_columns=[1]), sections), [])

    def test_available_tables(self):
        tables = self.projector.available_tables(self.sections)
        self.assertEqual([(t.id, t.title) for t in tables], [("tbl", "Table in Revenue")])

    def test_parse_chart_number(self):
        self.assertEqual(parse_chart_number("$1,234.5"), 1234.5)
        self.assertEqual(parse_chart_number("12abc"), 12.0)
        self.assertEqual(parse_chart_number("#DIV/0!"), 0.0)
        self.assertEqual(parse_chart_number(""), 0.0)


if __name__ == '__main__':
    unittest.main()
