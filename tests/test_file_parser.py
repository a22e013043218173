"""
Tests for genetic data file parsing
"""

import json

import pytest

from genedash.core.errors import GeneticFileError
from genedash.services.file_parser import is_supported_file, parse_genetic_file


class TestDelimitedFiles:
    """CSV, TSV and TXT uploads"""

    def test_csv_with_header_aliases(self):
        content = (
            "Gene Symbol,RSID,Alleles,Chr,Pos\n"
            "APOE,rs429358,CT,19,44908684\n"
            "MTHFR,rs1801133,AG,1,not-a-number\n"
        ).encode()

        markers = parse_genetic_file(content, "results.csv")

        assert len(markers) == 2
        assert markers[0].gene == "APOE"
        assert markers[0].variant == "rs429358"
        assert markers[0].genotype == "CT"
        assert markers[0].chromosome == "19"
        assert markers[0].position == 44908684
        assert markers[1].position is None

    def test_rows_missing_required_fields_are_dropped(self):
        content = (
            "gene,variant,genotype\n"
            "APOE,rs429358,CT\n"
            "F5,rs6025,\n"
            ",rs7412,CT\n"
        ).encode()

        markers = parse_genetic_file(content, "markers.csv")

        assert [m.gene for m in markers] == ["APOE"]

    def test_empty_column_falls_back_to_alias(self):
        content = (
            "gene,variant,rsid,genotype\n"
            "APOE,,rs429358,CT\n"
            "F5,rs6025,rs0000,AG\n"
        ).encode()

        markers = parse_genetic_file(content, "markers.csv")

        assert [m.variant for m in markers] == ["rs429358", "rs6025"]

    def test_tsv_and_comment_lines(self):
        content = (
            "# exported by lab\n"
            "gene\tsnp\tresult\n"
            "HFE\trs1800562\tAG\n"
        ).encode()

        markers = parse_genetic_file(content, "markers.tsv")

        assert len(markers) == 1
        assert markers[0].variant == "rs1800562"
        assert markers[0].genotype == "AG"

    def test_txt_delimiter_is_sniffed(self):
        tab_content = b"gene\tid\tgenotype\nCYP2C19\trs4244285\tAG\n"
        comma_content = b"gene,id,genotype\nCYP2C19,rs4244285,AG\n"

        assert parse_genetic_file(tab_content, "raw.txt")[0].variant == "rs4244285"
        assert parse_genetic_file(comma_content, "raw.txt")[0].variant == "rs4244285"

    def test_byte_order_mark_and_bad_bytes_are_tolerated(self):
        content = "\ufeffgene,variant,genotype\nAPOE,rs7412,CT\n".encode("utf-8") + b"\xff\xfe,broken\n"

        markers = parse_genetic_file(content, "markers.csv")

        assert markers[0].gene == "APOE"

    def test_empty_file_gives_no_markers(self):
        assert parse_genetic_file(b"", "empty.csv") == []


class TestJsonFiles:
    """JSON uploads"""

    def test_markers_array(self):
        content = json.dumps({
            "markers": [
                {"gene": "APOE", "variant": "rs429358", "genotype": "CC", "chromosome": "19", "position": 44908684},
                {"gene": "F5", "variant": "rs6025", "genotype": "AG"},
            ]
        }).encode()

        markers = parse_genetic_file(content, "upload.JSON")

        assert [m.gene for m in markers] == ["APOE", "F5"]
        assert markers[0].position == 44908684
        assert markers[1].chromosome is None

    @pytest.mark.parametrize("content", [
        b"{not json",
        b"[]",
        b'{"markers": "APOE"}',
        b'{"markers": [{"gene": "APOE", "variant": "rs429358"}]}',
    ])
    def test_invalid_json_is_rejected(self, content):
        with pytest.raises(GeneticFileError, match="Failed to parse JSON file"):
            parse_genetic_file(content, "upload.json")


class TestVcfFiles:
    """VCF uploads"""

    VCF = (
        "##fileformat=VCFv4.2\n"
        "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tSAMPLE1\n"
        "19\t44908684\trs429358\tT\tC\t.\tPASS\tGENE=APOE\tGT\t0/1\n"
        "1\t11796321\trs1801133\tG\tA\t.\tPASS\tGENEINFO=MTHFR:4524\tGT:DP\t1|1:30\n"
        "10\t94781859\t.\tG\tA\t.\tPASS\tANN=A|missense_variant|MODERATE|CYP2C19|ENSG00000165841\tGT\t0/0\n"
        "2\t1000\trs999\tC\tT\t.\tPASS\tDP=10\tGT\t0/1\n"
    )

    def test_genes_and_genotypes_are_resolved(self):
        markers = parse_genetic_file(self.VCF.encode(), "sample.vcf")

        assert [(m.gene, m.variant, m.genotype) for m in markers] == [
            ("APOE", "rs429358", "TC"),
            ("MTHFR", "rs1801133", "AA"),
            ("CYP2C19", "10:94781859:G>A", "GG"),
        ]
        assert markers[0].chromosome == "19"
        assert markers[0].position == 44908684

    def test_records_without_genotype_are_dropped(self):
        vcf = (
            "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"
            "19\t44908684\trs429358\tT\tC\t.\tPASS\tGENE=APOE\n"
        )
        assert parse_genetic_file(vcf.encode(), "sites.vcf") == []


class TestFileTypes:

    def test_unsupported_extension(self):
        with pytest.raises(GeneticFileError, match="Unsupported file format"):
            parse_genetic_file(b"gene,variant,genotype\n", "markers.xlsx")

    def test_is_supported_file(self):
        assert is_supported_file("Markers.CSV")
        assert is_supported_file("sample.vcf")
        assert not is_supported_file("report.pdf")
