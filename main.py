from covid_screening.pipeline import PipelineRunner


def main() -> None:
    """Run the full COVID-19 screening and model-comparison pipeline."""
    runner = PipelineRunner("config/default.yaml")
    runner.run()


if __name__ == "__main__":
    main()
