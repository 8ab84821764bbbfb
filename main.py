## Project: Lotto Ensemble Predictor
## Purpose of File: Main Program Execution
## Description:
## Entry point for the Lotto Ensemble Predictor. Handles the database, the ensemble
## prediction, feedback on resolved draws, saved ensemble state and the user interface.

# -*- coding: utf-8 -*-

from datetime import datetime

import database
from config.errors import LottoError
from config.logs import configure_logging
from data_io import load_ensemble_state, save_ensemble_state
from database import fetch_all_draws, fetch_draw_by_date, fetch_recent_draws, initialize_database, insert_draw
from ensemble import EnsemblePredictor
from records import MAX_NUMBER, MIN_NUMBER, PICK_SIZE, validate_numbers
from steps.frequency import occurrence_counts, recency
from steps.historical import process_historical_data
from steps.sequence import DRAW_TYPES

RECENT_LIMIT = 10
TOP_ATTRIBUTIONS = 10


# ============================================================
# Utility Functions
# ============================================================
def verify_draw_order():
    """Verify that draw_id reflects chronological order."""
    all_draws = fetch_all_draws()
    if not all_draws:
        return
    ids = [draw["id"] for draw in all_draws]
    if ids == sorted(ids):
        print("Verification Passed: draw_id correctly reflects chronological order.")
    else:
        print("Verification Failed: draw_id does NOT correctly reflect chronological order.")


def load_history():
    """All stored draws as validated Draw records, oldest first."""
    return process_historical_data(fetch_all_draws())


def read_numbers(prompt):
    raw = input(prompt).replace(",", " ").split()
    return list(validate_numbers(raw, "Numbers"))


def read_draw_type(prompt="Draw type"):
    choice = input(f"{prompt} ({'/'.join(DRAW_TYPES)}, Enter for none): ").strip()
    if choice and choice not in DRAW_TYPES:
        print(f"Unknown draw type '{choice}'; the sequence estimator will ignore it.")
    return choice


def print_prediction(prediction):
    print(f"\nPredicted numbers: {prediction.numbers} (confidence {prediction.confidence:.1f}%)")
    print("Estimator weights:")
    for name, weight in prediction.weights.items():
        output = prediction.estimators.get(name)
        picks = output.numbers if output else "-"
        print(f"  {name:<14} {weight:6.3f}  {picks}")
    for name, reason in prediction.failures.items():
        print(f"  [skipped] {name}: {reason}")
    if prediction.monte_carlo:
        lower, upper = prediction.monte_carlo["confidence_interval"]
        print(f"Expected matches of the Monte Carlo set: [{lower:.3f}, {upper:.3f}]")
    if prediction.attribution:
        top = ", ".join(f"{name} ({value:+.4f})" for name, value in prediction.attribution["top_positive"])
        print(f"Strongest positive features: {top or 'none'}")


def view_number_stats(predictor):
    """Display occurrence, share and recency for every number."""
    draws = load_history()
    if not draws:
        print("No draws in database.")
        return
    counts = occurrence_counts(draws)
    gaps = recency(draws)
    print(f"\n--- Number Stats ({MIN_NUMBER}..{MAX_NUMBER}, {len(draws)} draws) ---")
    print("Number | Occurrences | % of draws | Draws since seen")
    for i in range(MAX_NUMBER):
        percent = counts[i] / len(draws) * 100
        print(f"{i + 1:2d}     | {int(counts[i]):10d}  | {percent:8.2f}%  | {int(gaps[i]):6d}")

    predictor.bayesian.update_priors(draws)
    stats = predictor.bayesian.get_prior_statistics()
    print(f"\nMost frequent:  {stats['most_frequent_numbers']}")
    print(f"Least frequent: {stats['least_frequent_numbers']}")
    convergence = predictor.bayesian.analyze_prior_convergence()
    print(f"Posterior convergence score: {convergence['convergence_score']:.3f}")
    for line in convergence["recommendations"]:
        print(f"  - {line}")


def view_global_attribution(predictor):
    result = predictor.explain_model()
    print(f"\n--- Global Feature Attribution ({result.samples_explained} samples) ---")
    ranked = sorted(result.feature_importances.items(), key=lambda kv: kv[1], reverse=True)
    for name, importance in ranked[:TOP_ATTRIBUTIONS]:
        print(f"{name:<22} {importance:.5f}  (mean {result.average_contributions[name]:+.5f})")
    print(f"Stability score: {result.stability_score:.3f}")


# ============================================================
# Safe Execution Wrapper
# ============================================================
def safe_run(step_fn, name):
    """Safely execute a menu action with error handling."""
    try:
        result = step_fn()
        print(f"[OK] {name} completed.")
        return result
    except (LottoError, ValueError) as e:
        print(f"[ERROR] {name} failed: {e}")
        return None


# ============================================================
# Menu Actions
# ============================================================
def list_recent_draws():
    last_draws = fetch_recent_draws(RECENT_LIMIT)
    if not last_draws:
        print("No historical draws.")
        return
    print(f"\n--- Last {RECENT_LIMIT} Draws ---")
    for draw in last_draws:
        print(f"Date: {draw['date']} | {draw['name'] or '-':<8} | Numbers: {draw['main_numbers']} | "
              f"Machine: {draw['secondary_numbers'] or '-'}")


def insert_new_draw():
    draw_date = input("Enter draw date (YYYY-MM-DD) or press Enter for today: ").strip()
    if not draw_date:
        draw_date = datetime.now().strftime("%Y-%m-%d")
    else:
        datetime.strptime(draw_date, "%Y-%m-%d")

    name = read_draw_type()
    if any(row["name"] == name for row in fetch_draw_by_date(draw_date)):
        raise ValueError(f"A {name or 'unnamed'} draw on {draw_date} is already stored.")
    numbers = read_numbers(f"Enter {PICK_SIZE} winning numbers ({MIN_NUMBER}-{MAX_NUMBER}): ")
    machine_raw = input(f"Enter {PICK_SIZE} machine numbers or press Enter to skip: ").strip()
    machine = list(validate_numbers(machine_raw.replace(",", " ").split(), "Machine numbers")) if machine_raw else None

    new_id = insert_draw(draw_date, name, numbers, machine)
    if not new_id:
        raise ValueError("Draw could not be stored (duplicate date and type?).")
    print(f"New draw inserted with draw_id = {new_id}")
    return new_id


def run_prediction(predictor):
    draws = load_history()
    draw_type = read_draw_type("Upcoming draw type")
    prediction = predictor.predict(draws, draw_type)
    print_prediction(prediction)
    return prediction


def record_feedback(predictor):
    actual = read_numbers(f"Enter the {PICK_SIZE} winning numbers of the resolved draw: ")
    score = input("Your rating of the prediction (0-10) or press Enter to skip: ").strip()
    result = predictor.update_with_feedback(actual, feedback=float(score) if score else None)
    print(f"Matches: {result['matches']}/{PICK_SIZE} | reward: {result['reward']}")
    for name, ratio in result["match_ratios"].items():
        print(f"  {name:<14} {ratio:.2f}")
    if result["meta_trained"]:
        print("Meta-learner retrained on the feedback history.")
    save_ensemble_state(predictor)
    return result


# ============================================================
# Main Program Loop
# ============================================================
def main():
    configure_logging()
    initialize_database()
    verify_draw_order()

    predictor = EnsemblePredictor(store=database)
    load_ensemble_state(predictor)

    while True:
        print("\n--- Lotto Ensemble Predictor Menu ---")
        print("1. List Last 10 Results (from DB)")
        print("2. Insert New Draw")
        print("3. Predict Next Draw")
        print("4. Record Result of Last Prediction")
        print("5. Number Stats")
        print("6. Global Feature Attribution")
        print("7. Exit")

        choice = input("Enter your choice (1-7): ").strip()

        if choice == "1":
            list_recent_draws()
        elif choice == "2":
            safe_run(insert_new_draw, "Insert Draw")
        elif choice == "3":
            safe_run(lambda: run_prediction(predictor), "Ensemble Prediction")
        elif choice == "4":
            safe_run(lambda: record_feedback(predictor), "Feedback")
        elif choice == "5":
            safe_run(lambda: view_number_stats(predictor), "Number Stats")
        elif choice == "6":
            safe_run(lambda: view_global_attribution(predictor), "Global Attribution")
        elif choice == "7":
            save_ensemble_state(predictor)
            print("Exiting.")
            break
        else:
            print("Invalid choice. Select 1-7.")


if __name__ == "__main__":
    main()
