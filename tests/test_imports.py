def test_top_level_api_imports():
    import psystair as p

    for name in [
        "MultiStairHandler",
        "StaircaseType",
        "StaircaseStatus",
        "AdaptiveProcedure",
        "QuestHandler",
        "QuestConfig",
        "QuestMethod",
        "StairHandler",
        "TrialHandler",
        "TrialMethod",
        "Snapshot",
        "ExperimentData",
        "RandomSequenceProvider",
        "ConfigurationError",
        "InvalidResponseError",
    ]:
        assert hasattr(p, name)


def test_subpackage_imports():
    from psystair.data import import_conditions, save_entries_csv  # noqa: F401
    from psystair.model import quest_create, quest_update  # noqa: F401
    from psystair.session import MultiStairHandler  # noqa: F401
    from psystair.trial_placement import QuestHandler, StairHandler  # noqa: F401
    from psystair.utils import coerce_option, seed, split  # noqa: F401
