import argparse
from typing import List, Optional

from ..models.specs import ALL_MODELS, CV_MODELS, parse_model_kind


def normalize_models(models: Optional[str], default: List[str]) -> List[str]:
    """Split a comma-separated model list, canonicalize names and deduplicate"""
    if not models:
        return list(default)
    normalized = []
    for part in str(models).split(','):
        part = part.strip()
        if not part:
            continue
        name = parse_model_kind(part).value
        if name not in normalized:
            normalized.append(name)
    return normalized if normalized else list(default)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Genomic prediction benchmark: variance components and cross-validated accuracy",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Inputs
    parser.add_argument("--genotype", "-g", default=None,
                        help="Genotype file (CSV/TSV with ID column and one column per marker)")
    parser.add_argument("--phenotype", "-p", default=None,
                        help="Phenotype file (CSV/TSV with ID column and environment columns)")
    parser.add_argument("--format", "-f", default=None, choices=['csv', 'tsv'],
                        help="Genotype file format")
    parser.add_argument("--trait", default="0",
                        help="Phenotype column to analyse (name or 0-based position)")
    parser.add_argument("--simulate", action='store_true',
                        help="Use a simulated dataset instead of input files")
    parser.add_argument("--sim-n", type=int, default=200,
                        help="Simulated individuals")
    parser.add_argument("--sim-p", type=int, default=500,
                        help="Simulated markers")
    parser.add_argument("--sim-h2", type=float, default=0.5,
                        help="Simulated heritability")

    # Output
    parser.add_argument("--outputdir", "-o", default="./GP_results",
                        help="Output directory")
    parser.add_argument("--decimals", type=int, default=3,
                        help="Decimals shown in the accuracy summary")

    # Models
    parser.add_argument("--models", default=",".join(CV_MODELS),
                        help=f"Models to cross-validate (comma-separated, from {ALL_MODELS})")
    parser.add_argument("--vc-models", default=",".join(ALL_MODELS),
                        help="Models for variance-component estimation (comma-separated)")

    # Cross-validation
    parser.add_argument("--perc-test", type=float, default=0.3,
                        help="Fraction of individuals held out per replicate")
    parser.add_argument("--n-rep", type=int, default=10,
                        help="Number of cross-validation replicates")
    parser.add_argument("--n-jobs", type=int, default=1,
                        help="Worker processes for cross-validation (one model per worker)")

    # Sampler
    parser.add_argument("--n-iter", type=int, default=12000,
                        help="Gibbs iterations for variance-component estimation")
    parser.add_argument("--burn-in", type=int, default=2000,
                        help="Burn-in for variance-component estimation")
    parser.add_argument("--cv-n-iter", type=int, default=5000,
                        help="Gibbs iterations per cross-validation fit")
    parser.add_argument("--cv-burn-in", type=int, default=1000,
                        help="Burn-in per cross-validation fit")
    parser.add_argument("--thin", type=int, default=5,
                        help="Thinning interval")
    parser.add_argument("--seed", type=int, default=12345,
                        help="Master random seed")

    # Stages
    parser.add_argument("--skip-variance", action='store_true',
                        help="Skip variance-component estimation")
    parser.add_argument("--skip-cv", action='store_true',
                        help="Skip cross-validation and only aggregate existing results")
    parser.add_argument("--quiet", action='store_true',
                        help="Suppress progress output")
    return parser


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments for the genomic prediction pipeline"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.simulate and (args.genotype is None or args.phenotype is None):
        parser.error("--genotype and --phenotype are required unless --simulate is given")
    if not 0.0 < args.perc_test < 1.0:
        parser.error("--perc-test must be between 0 and 1 (exclusive)")
    try:
        args.models = normalize_models(args.models, CV_MODELS)
        args.vc_models = normalize_models(args.vc_models, ALL_MODELS)
    except ValueError as e:
        parser.error(str(e))
    if args.trait.isdigit():
        args.trait = int(args.trait)
    return args
