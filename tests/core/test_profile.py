from pumpsim.core.profile import DosingProfile


def complete_profile(name="Exercise"):
    profile = DosingProfile(name=name, insulin_action_duration_hours=4.0)
    profile.add_basal_rate(0, 0, 0.4)
    profile.add_basal_rate(6, 30, 0.9)
    profile.add_carb_ratio(0, 0, 12.0)
    profile.add_correction_factor(0, 0, 2.5)
    profile.add_target_glucose(0, 0, 6.0)
    return profile


def test_accessors_resolve_time_of_day():
    profile = complete_profile()

    assert profile.basal_rate(6, 29) == 0.4
    assert profile.basal_rate(6, 30) == 0.9
    assert profile.carb_ratio(18, 0) == 12.0
    assert profile.correction_factor(3, 0) == 2.5
    assert profile.target_glucose(23, 59) == 6.0


def test_new_profile_reports_missing_basal_first():
    profile = DosingProfile(name="Empty")

    assert not profile.is_valid()
    assert "basal rate" in profile.validation_message()


def test_validation_reports_first_missing_table():
    profile = DosingProfile(name="Partial", insulin_action_duration_hours=3.0)
    profile.add_basal_rate(0, 0, 0.5)
    profile.add_carb_ratio(0, 0, 10.0)

    assert "correction factor" in profile.validation_message()


def test_non_positive_duration_is_invalid():
    profile = complete_profile()
    profile.insulin_action_duration_hours = 0.0

    assert not profile.is_valid()
    assert "insulin duration" in profile.validation_message()


def test_complete_profile_is_valid():
    profile = complete_profile()

    assert profile.is_valid()
    assert profile.validation_message() == ""


def test_copy_can_rename_and_does_not_share_tables():
    profile = complete_profile()
    clone = profile.copy(name="Clone")
    clone.add_basal_rate(0, 0, 2.0)

    assert clone.name == "Clone"
    assert profile.basal_rate(1, 0) == 0.4
    assert profile.to_dict()["basal_rates"] == {0: 0.4, 390: 0.9}
