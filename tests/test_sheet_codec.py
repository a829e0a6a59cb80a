import tempfile
import unittest
from pathlib import Path

import pandas as pd

from askscript import sheet_codec
from askscript.errors import DecodeError, StorageError, ValidationError


class TestSheetDecode(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_decode_reads_first_tab_in_row_order(self):
        path = self.root / "faq.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame(
                [
                    {"Question": "What are your hours?", "Answer": "9-5"},
                    {"Question": "Where are you?", "Answer": "Downtown"},
                ]
            ).to_excel(writer, sheet_name="FAQ", index=False)
            pd.DataFrame([{"Question": "ignored", "Answer": "ignored"}]).to_excel(
                writer, sheet_name="Other", index=False
            )

        rows = sheet_codec.decode(path)
        self.assertEqual(
            rows,
            [
                {"Question": "What are your hours?", "Answer": "9-5"},
                {"Question": "Where are you?", "Answer": "Downtown"},
            ],
        )
        self.assertEqual(list(rows[0].keys()), ["Question", "Answer"])

    def test_decode_drops_empty_cells(self):
        path = self.root / "faq.xlsx"
        pd.DataFrame(
            [
                {"Question": "Q1", "Answer": "A1", "Notes": "first"},
                {"Question": "Q2", "Answer": "A2", "Notes": None},
            ]
        ).to_excel(path, index=False)
        rows = sheet_codec.decode(path)
        self.assertEqual(rows[1], {"Question": "Q2", "Answer": "A2"})
        self.assertEqual(rows[0]["Notes"], "first")

    def test_decode_missing_file(self):
        with self.assertRaises(DecodeError):
            sheet_codec.decode(self.root / "missing.xlsx")

    def test_decode_corrupt_file(self):
        path = self.root / "broken.xlsx"
        path.write_bytes(b"this is not a workbook")
        with self.assertRaises(DecodeError):
            sheet_codec.decode(path)

    def test_decode_header_only_sheet_has_no_rows(self):
        path = self.root / "empty.xlsx"
        pd.DataFrame(columns=["Question", "Answer"]).to_excel(path, index=False)
        with self.assertRaises(DecodeError):
            sheet_codec.decode(path)

    def test_decode_unsupported_extension(self):
        path = self.root / "faq.txt"
        path.write_text("Question,Answer\nQ,A\n", encoding="utf-8")
        with self.assertRaises(DecodeError):
            sheet_codec.decode(path)

    def test_decode_csv(self):
        path = self.root / "faq.csv"
        path.write_text("Question,Answer\nWhat are your hours?,9-5\n", encoding="utf-8")
        self.assertEqual(sheet_codec.decode(path), [{"Question": "What are your hours?", "Answer": "9-5"}])

    def test_decode_keeps_na_words_but_drops_blank_cells(self):
        path = self.root / "faq.xlsx"
        pd.DataFrame(
            [
                {"Question": "Do you ship abroad?", "Answer": "N/A", "Notes": None},
                {"Question": "None", "Answer": "null", "Notes": "NULL"},
            ]
        ).to_excel(path, index=False)
        self.assertEqual(
            sheet_codec.decode(path),
            [
                {"Question": "Do you ship abroad?", "Answer": "N/A"},
                {"Question": "None", "Answer": "null", "Notes": "NULL"},
            ],
        )

    def test_decode_error_is_a_storage_error(self):
        self.assertTrue(issubclass(DecodeError, StorageError))


class TestSheetEncode(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_encode_overwrites_with_exact_rows(self):
        path = self.root / "faq.xlsx"
        pd.DataFrame([{"Question": "old", "Answer": "old"}] * 5).to_excel(path, index=False)

        rows = [
            {"Question": "What are your hours?", "Answer": "9-5"},
            {"Question": "Where are you?", "Answer": "Downtown", "Notes": "moved in May"},
        ]
        sheet_codec.encode(rows, path)
        self.assertEqual(sheet_codec.decode(path), rows)

    def test_encode_writes_a_single_tab(self):
        path = self.root / "faq.xlsx"
        sheet_codec.encode([{"Question": "Q", "Answer": "A"}], path)
        with pd.ExcelFile(path, engine="openpyxl") as workbook:
            self.assertEqual(workbook.sheet_names, [sheet_codec.SHEET_NAME])

    def test_encode_csv(self):
        path = self.root / "faq.csv"
        rows = [{"Question": "Q", "Answer": "A"}]
        sheet_codec.encode(rows, path)
        self.assertEqual(sheet_codec.decode(path), rows)

    def test_na_like_and_numeric_looking_text_survives(self):
        rows = [
            {"Question": "Do you ship abroad?", "Answer": "N/A"},
            {"Question": "None", "Answer": "null"},
            {"Question": "What is the code?", "Answer": "007"},
            {"Question": "NaN", "Answer": "NA", "Notes": "n/a"},
        ]
        for suffix in (".xlsx", ".csv"):
            with self.subTest(suffix=suffix):
                path = self.root / f"faq{suffix}"
                sheet_codec.encode(rows, path)
                self.assertEqual(sheet_codec.decode(path), rows)

    def test_int_column_with_gaps(self):
        rows = [
            {"Question": "Q1", "Answer": "A1", "Rank": 5},
            {"Question": "Q2", "Answer": "A2"},
            {"Question": "Q3", "Answer": "A3", "Rank": 12},
        ]
        xlsx = self.root / "faq.xlsx"
        sheet_codec.encode(rows, xlsx)
        decoded = sheet_codec.decode(xlsx)
        self.assertEqual(decoded, rows)
        self.assertIsInstance(decoded[0]["Rank"], int)

        # CSV carries no cell types, so numbers come back as their text.
        csv = self.root / "faq.csv"
        sheet_codec.encode(rows, csv)
        self.assertEqual(
            sheet_codec.decode(csv),
            [
                {"Question": "Q1", "Answer": "A1", "Rank": "5"},
                {"Question": "Q2", "Answer": "A2"},
                {"Question": "Q3", "Answer": "A3", "Rank": "12"},
            ],
        )

    def test_csv_text_is_not_type_inferred(self):
        path = self.root / "faq.csv"
        path.write_text("Question,Answer\nWhat is the code?,007\nTrue?,TRUE\n", encoding="utf-8")
        self.assertEqual(
            sheet_codec.decode(path),
            [{"Question": "What is the code?", "Answer": "007"}, {"Question": "True?", "Answer": "TRUE"}],
        )

    def test_encode_rejects_unsupported_target(self):
        with self.assertRaises(StorageError):
            sheet_codec.encode([{"Question": "Q", "Answer": "A"}], self.root / "faq.ods")

    def test_header_is_ordered_union_of_keys(self):
        rows = [{"Question": "Q", "Answer": "A"}, {"Tag": "t", "Question": "Q2"}, {"Answer": "A3", "Extra": 1}]
        self.assertEqual(sheet_codec.ordered_columns(rows), ["Question", "Answer", "Tag", "Extra"])


class TestRequiredColumns(unittest.TestCase):
    def test_accepts_question_and_answer(self):
        sheet_codec.require_question_answer([{"Question": "Q", "Answer": "A"}])

    def test_rejects_missing_answer(self):
        with self.assertRaises(ValidationError):
            sheet_codec.require_question_answer([{"Question": "Q"}])

    def test_rejects_blank_question(self):
        with self.assertRaises(ValidationError):
            sheet_codec.require_question_answer([{"Question": "  ", "Answer": "A"}])

    def test_rejects_empty_rows(self):
        with self.assertRaises(ValidationError):
            sheet_codec.require_question_answer([])

    def test_only_first_row_is_checked(self):
        sheet_codec.require_question_answer([{"Question": "Q", "Answer": "A"}, {"Other": "x"}])


if __name__ == "__main__":
    unittest.main()
