"""
Reference interpretations for well-known variants

A small static table used when the language model cannot be reached. Keys are
the variant id and the genotype with its alleles sorted, so "TC" and "CT"
resolve to the same entry.
"""

from typing import Dict, Optional, Tuple

from genedash.schemas import MarkerInput, MarkerInterpretation

REFERENCE_VARIANTS: Dict[Tuple[str, str], Dict] = {
    # APOE e4 allele tag SNP
    ("rs429358", "CC"): {
        "impact": "High",
        "clinical_significance": "Risk Factor",
        "risk_score": 4.5,
        "health_category": "Neurological Health",
        "subcategory": "Alzheimer's Disease",
        "explanation": "Homozygous for the APOE e4-defining allele. APOE e4/e4 carriers have a substantially increased lifetime risk of late-onset Alzheimer's disease and elevated LDL cholesterol.",
        "recommendations": [
            "Discuss results with a genetic counselor",
            "Prioritise cardiovascular risk management (blood pressure, lipids, exercise)",
        ],
    },
    ("rs429358", "CT"): {
        "impact": "Moderate",
        "clinical_significance": "Risk Factor",
        "risk_score": 3.0,
        "health_category": "Neurological Health",
        "subcategory": "Alzheimer's Disease",
        "explanation": "Carries one APOE e4-defining allele, associated with a moderately increased risk of late-onset Alzheimer's disease.",
        "recommendations": [
            "Maintain regular physical and cognitive activity",
            "Monitor lipid levels",
        ],
    },
    ("rs429358", "TT"): {
        "impact": "Low",
        "clinical_significance": "Benign",
        "risk_score": 1.0,
        "health_category": "Neurological Health",
        "subcategory": "Alzheimer's Disease",
        "explanation": "No APOE e4-defining allele at this position.",
        "recommendations": [],
    },
    # APOE e2 allele tag SNP
    ("rs7412", "CT"): {
        "impact": "Low",
        "clinical_significance": "Likely Benign",
        "risk_score": 1.5,
        "health_category": "Cardiovascular Health",
        "subcategory": "Lipid Metabolism",
        "explanation": "Carries one APOE e2-defining allele, generally associated with lower LDL cholesterol.",
        "recommendations": ["Routine lipid screening"],
    },
    # MTHFR C677T
    ("rs1801133", "AA"): {
        "impact": "Moderate",
        "clinical_significance": "Risk Factor",
        "risk_score": 2.5,
        "health_category": "Metabolic Health",
        "subcategory": "Folate Metabolism",
        "explanation": "Homozygous MTHFR C677T (TT on the coding strand). Enzyme activity is reduced to roughly 30%, which may raise homocysteine when folate intake is low.",
        "recommendations": [
            "Check plasma homocysteine",
            "Ensure adequate dietary folate and B12",
        ],
    },
    ("rs1801133", "AG"): {
        "impact": "Low",
        "clinical_significance": "Likely Benign",
        "risk_score": 1.5,
        "health_category": "Metabolic Health",
        "subcategory": "Folate Metabolism",
        "explanation": "Heterozygous MTHFR C677T with mildly reduced enzyme activity; rarely clinically significant.",
        "recommendations": ["Maintain adequate dietary folate"],
    },
    # Factor V Leiden
    ("rs6025", "AG"): {
        "impact": "High",
        "clinical_significance": "Pathogenic",
        "risk_score": 4.0,
        "health_category": "Cardiovascular Health",
        "subcategory": "Venous Thromboembolism",
        "explanation": "Heterozygous Factor V Leiden, a 3-8 fold increase in venous thrombosis risk.",
        "recommendations": [
            "Inform clinicians before surgery or prolonged immobilisation",
            "Discuss estrogen-containing medications with a physician",
        ],
    },
    ("rs6025", "AA"): {
        "impact": "High",
        "clinical_significance": "Pathogenic",
        "risk_score": 5.0,
        "health_category": "Cardiovascular Health",
        "subcategory": "Venous Thromboembolism",
        "explanation": "Homozygous Factor V Leiden with a markedly increased risk of venous thrombosis.",
        "recommendations": [
            "Refer to haematology",
            "Avoid estrogen-containing medications unless advised by a specialist",
        ],
    },
    # HFE C282Y
    ("rs1800562", "AA"): {
        "impact": "High",
        "clinical_significance": "Pathogenic",
        "risk_score": 4.0,
        "health_category": "Metabolic Health",
        "subcategory": "Hereditary Hemochromatosis",
        "explanation": "Homozygous HFE C282Y, the most common genotype behind hereditary hemochromatosis.",
        "recommendations": [
            "Measure ferritin and transferrin saturation",
            "Avoid iron supplements unless prescribed",
        ],
    },
    ("rs1800562", "AG"): {
        "impact": "Low",
        "clinical_significance": "Carrier",
        "risk_score": 1.5,
        "health_category": "Metabolic Health",
        "subcategory": "Hereditary Hemochromatosis",
        "explanation": "Carrier of HFE C282Y; iron overload is uncommon without a second variant.",
        "recommendations": ["Consider iron studies if symptomatic"],
    },
    # BRCA1 185delAG / BRCA2 6174delT founder variants
    ("rs80357914", "DI"): {
        "impact": "High",
        "clinical_significance": "Pathogenic",
        "risk_score": 5.0,
        "health_category": "Cancer Risk",
        "subcategory": "Hereditary Breast and Ovarian Cancer",
        "explanation": "BRCA1 185delAG founder variant detected; strongly increases breast and ovarian cancer risk.",
        "recommendations": [
            "Refer for genetic counseling and confirmatory clinical testing",
            "Discuss enhanced screening and risk-reducing options",
        ],
    },
    ("rs80359550", "DI"): {
        "impact": "High",
        "clinical_significance": "Pathogenic",
        "risk_score": 5.0,
        "health_category": "Cancer Risk",
        "subcategory": "Hereditary Breast and Ovarian Cancer",
        "explanation": "BRCA2 6174delT founder variant detected; strongly increases breast, ovarian, prostate and pancreatic cancer risk.",
        "recommendations": [
            "Refer for genetic counseling and confirmatory clinical testing",
            "Discuss enhanced screening and risk-reducing options",
        ],
    },
    # CYP2C19*2
    ("rs4244285", "AA"): {
        "impact": "High",
        "clinical_significance": "Drug Response",
        "risk_score": 4.0,
        "health_category": "Pharmacogenomics",
        "subcategory": "Clopidogrel Response",
        "explanation": "CYP2C19*2/*2 poor metabolizer; clopidogrel is unlikely to be activated effectively.",
        "recommendations": ["Share pharmacogenomic results with prescribing clinicians"],
    },
    ("rs4244285", "AG"): {
        "impact": "Moderate",
        "clinical_significance": "Drug Response",
        "risk_score": 3.0,
        "health_category": "Pharmacogenomics",
        "subcategory": "Clopidogrel Response",
        "explanation": "CYP2C19*2 carrier (intermediate metabolizer) with reduced clopidogrel activation.",
        "recommendations": ["Share pharmacogenomic results with prescribing clinicians"],
    },
}


def normalise_genotype(genotype: str) -> str:
    alleles = [c for c in genotype.upper() if c.isalpha()]
    return "".join(sorted(alleles))


def lookup_reference(marker: MarkerInput) -> Optional[MarkerInterpretation]:
    """Return the stored interpretation for a marker, if the table has one"""
    entry = REFERENCE_VARIANTS.get((marker.variant.lower(), normalise_genotype(marker.genotype)))
    if entry is None:
        return None
    return MarkerInterpretation(**marker.model_dump(), **entry, source="reference")
