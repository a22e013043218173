"""
Genetic data file parsing
Turns uploaded CSV, TSV, JSON and VCF text into marker records
"""

import csv
import io
import json
import logging
from typing import Dict, List, Optional, Any

from pydantic import ValidationError

from genedash.core.errors import GeneticFileError
from genedash.schemas import MarkerInput

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".tsv", ".txt", ".json", ".vcf")

# Normalised header name -> marker field
HEADER_ALIASES = {
    "gene": "gene",
    "genename": "gene",
    "gene_symbol": "gene",
    "genesymbol": "gene",
    "symbol": "gene",
    "variant": "variant",
    "rsid": "variant",
    "snp": "variant",
    "id": "variant",
    "genotype": "genotype",
    "alleles": "genotype",
    "result": "genotype",
    "chromosome": "chromosome",
    "chr": "chromosome",
    "chrom": "chromosome",
    "position": "position",
    "pos": "position",
}


def is_supported_file(filename: str) -> bool:
    return filename.lower().endswith(SUPPORTED_EXTENSIONS)


def parse_genetic_file(content: bytes, filename: str) -> List[MarkerInput]:
    """Parse an uploaded genetic data file into markers

    Rows that lack a gene, variant or genotype are dropped. An empty result
    is returned as-is; deciding whether that is an error is up to the caller.
    """
    text = content.decode("utf-8-sig", errors="replace")
    name = filename.lower()

    if name.endswith(".json"):
        markers = _parse_json(text)
    elif name.endswith(".vcf"):
        markers = _parse_vcf(text)
    elif name.endswith(".csv"):
        markers = _parse_delimited(text, delimiter=",")
    elif name.endswith(".tsv"):
        markers = _parse_delimited(text, delimiter="\t")
    elif name.endswith(".txt"):
        markers = _parse_delimited(text, delimiter=_sniff_delimiter(text))
    else:
        raise GeneticFileError("Unsupported file format. Please upload CSV, TSV, JSON or VCF files.")

    logger.info(f"📄 Parsed {len(markers)} markers from {filename}")
    return markers


def _parse_json(text: str) -> List[MarkerInput]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GeneticFileError("Failed to parse JSON file") from e

    if not isinstance(data, dict) or not isinstance(data.get("markers"), list):
        raise GeneticFileError("Failed to parse JSON file: expected an object with a 'markers' array")

    markers = []
    for item in data["markers"]:
        if not isinstance(item, dict):
            raise GeneticFileError("Failed to parse JSON file: markers must be objects")
        marker = _build_marker(
            gene=item.get("gene"),
            variant=item.get("variant") or item.get("rsid"),
            genotype=item.get("genotype"),
            chromosome=item.get("chromosome"),
            position=item.get("position"),
        )
        if marker is None:
            raise GeneticFileError("Failed to parse JSON file: every marker needs gene, variant and genotype")
        markers.append(marker)
    return markers


def _sniff_delimiter(text: str) -> str:
    for line in text.splitlines():
        if line.strip() and not line.startswith("#"):
            return "\t" if "\t" in line else ","
    return ","


def _normalise_header(header: str) -> str:
    return "".join(header.strip().lower().split())


def _parse_delimited(text: str, delimiter: str) -> List[MarkerInput]:
    lines = [line for line in text.splitlines() if line.strip() and not line.startswith("#")]
    if not lines:
        return []

    reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
    headers = [HEADER_ALIASES.get(_normalise_header(h)) for h in next(reader)]

    markers = []
    for row in reader:
        fields: Dict[str, str] = {}
        for header, value in zip(headers, row):
            # First non-empty matching column wins when aliases collide
            if header and not fields.get(header):
                fields[header] = value.strip()
        marker = _build_marker(**fields)
        if marker is not None:
            markers.append(marker)
    return markers


def _parse_vcf(text: str) -> List[MarkerInput]:
    columns: List[str] = []
    markers = []

    for line in text.splitlines():
        if not line.strip() or line.startswith("##"):
            continue
        if line.startswith("#CHROM"):
            columns = line.lstrip("#").split("\t")
            continue

        values = line.split("\t")
        if len(values) < 8:
            continue
        record = dict(zip(columns or ["CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO"], values))

        chrom, pos = record.get("CHROM", ""), record.get("POS", "")
        ref, alt = record.get("REF", ""), record.get("ALT", "")
        variant = record.get("ID", ".")
        if variant in ("", "."):
            variant = f"{chrom}:{pos}:{ref}>{alt}"

        genotype = _vcf_genotype(values, ref, alt)
        marker = _build_marker(
            gene=_vcf_gene(record.get("INFO", "")),
            variant=variant,
            genotype=genotype,
            chromosome=chrom,
            position=pos,
        )
        if marker is not None:
            markers.append(marker)
    return markers


def _vcf_gene(info: str) -> Optional[str]:
    entries = {}
    for entry in info.split(";"):
        key, _, value = entry.partition("=")
        entries[key] = value

    if entries.get("GENE"):
        return entries["GENE"]
    if entries.get("GENEINFO"):
        # ClinVar style: SYMBOL:geneid|SYMBOL2:geneid2
        return entries["GENEINFO"].split("|")[0].split(":")[0]
    if entries.get("ANN"):
        fields = entries["ANN"].split(",")[0].split("|")
        if len(fields) > 3 and fields[3]:
            return fields[3]
    return None


def _vcf_genotype(values: List[str], ref: str, alt: str) -> Optional[str]:
    """Translate the first sample's GT call into allele letters"""
    if len(values) < 10:
        return None
    format_keys = values[8].split(":")
    sample = values[9].split(":")
    if "GT" not in format_keys:
        return None
    gt_index = format_keys.index("GT")
    if gt_index >= len(sample):
        return None

    alleles = [ref] + alt.split(",")
    letters = []
    for call in sample[gt_index].replace("|", "/").split("/"):
        if not call.isdigit() or int(call) >= len(alleles):
            return None
        letters.append(alleles[int(call)])
    return "".join(letters)


def _parse_position(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _build_marker(gene: Any = None, variant: Any = None, genotype: Any = None,
                  chromosome: Any = None, position: Any = None) -> Optional[MarkerInput]:
    gene = str(gene).strip() if gene is not None else ""
    variant = str(variant).strip() if variant is not None else ""
    genotype = str(genotype).strip() if genotype is not None else ""
    if not (gene and variant and genotype):
        return None

    chromosome = str(chromosome).strip() if chromosome not in (None, "") else None
    try:
        return MarkerInput(
            gene=gene,
            variant=variant,
            genotype=genotype,
            chromosome=chromosome,
            position=_parse_position(position),
        )
    except ValidationError:
        return None
