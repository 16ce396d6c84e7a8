#!/usr/bin/env python3
"""
Genomic prediction benchmark: variance components, repeated cross-validation
and accuracy report for one trait.
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gpbench.cli.utils import parse_args
from gpbench.pipelines.workflow import GenomicPredictionPipeline


def main(argv=None):
    args = parse_args(argv)

    pipeline = GenomicPredictionPipeline(output_dir=args.outputdir, verbose=not args.quiet)

    # 1. Load or simulate data
    if args.simulate:
        pipeline.load_simulated(n=args.sim_n, p=args.sim_p, h2=args.sim_h2, seed=args.seed)
    else:
        pipeline.load_data(
            phenotype_file=args.phenotype,
            genotype_file=args.genotype,
            genotype_format=args.format,
        )

    # 2. Align and prepare
    pipeline.align_samples()
    pipeline.prepare(args.trait)

    # 3. Variance components
    if not args.skip_variance:
        pipeline.estimate_variance_components(
            models=args.vc_models,
            n_iter=args.n_iter,
            burn_in=args.burn_in,
            thin=args.thin,
            seed=args.seed,
        )

    # 4. Cross-validation
    if not args.skip_cv:
        pipeline.run_cross_validation(
            models=args.models,
            perc_test=args.perc_test,
            n_rep=args.n_rep,
            n_iter=args.cv_n_iter,
            burn_in=args.cv_burn_in,
            thin=args.thin,
            master_seed=args.seed,
            n_jobs=args.n_jobs,
        )

    # 5. Report
    report = pipeline.report(models=args.models, decimals=args.decimals)
    if report['missing']:
        print(f"\nModels without results: {', '.join(report['missing'])}")

    print(f"\nResults saved to: {args.outputdir}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
