#!/usr/bin/env python3
"""
Seed data script for testing the expense tracker application.
Creates sample expenses for one user in the expenses table.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
import uuid
import random

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared.config import Settings
from shared.dynamodb import DynamoDBClient
from expenses.models import ExpenseCategory


DESCRIPTIONS = {
    'food': ['Lunch at the deli', 'Coffee', 'Dinner with friends', 'Pizza night', 'Bakery'],
    'transport': ['Taxi, airport', 'Metro card top-up', 'Gas', 'Parking', 'Bike repair'],
    'entertainment': ['Movie tickets', 'Concert', 'Streaming subscription', 'Board game'],
    'shopping': ['Running shoes', 'Headphones', 'Birthday gift', 'Winter jacket'],
    'utilities': ['Electric bill', 'Water bill', 'Internet', 'Phone plan'],
    'health': ['Pharmacy', 'Dentist visit', 'Gym membership'],
    'education': ['Online course', 'Textbooks', 'Workshop "Intro to Python"'],
    'travel': ['Hotel', 'Flight', 'Rental car'],
    'other': ['Miscellaneous', 'Donation']
}


def build_expenses(user_id, num_expenses=50):
    """Build sample expense rows."""
    now = datetime.now(timezone.utc)
    expenses = []

    for _ in range(num_expenses):
        # Random date within last 60 days
        days_ago = random.randint(0, 60)
        date = (now - timedelta(days=days_ago)).strftime('%Y-%m-%d')

        category = random.choice(list(ExpenseCategory)).value

        expenses.append({
            'id': str(uuid.uuid4()),
            'user_id': user_id,
            'amount': round(random.uniform(5.0, 200.0), 2),
            'category': category,
            'description': random.choice(DESCRIPTIONS[category]),
            'date': date,
            'created_at': now.isoformat(),
            'updated_at': now.isoformat()
        })

    return expenses


def main():
    """Main function."""
    print("=" * 50)
    print("Expense Tracker - Seed Data Script")
    print("=" * 50)

    settings = Settings.from_env()
    print(f"\nExpenses table: {settings.expenses_table}")

    # Get user ID
    user_id = input("\nEnter user ID (Cognito sub) to seed data for: ").strip()
    if not user_id:
        print("Error: User ID is required")
        sys.exit(1)

    # Get number of expenses
    num_expenses = input("Enter number of expenses to create (default: 50): ").strip()
    num_expenses = int(num_expenses) if num_expenses else 50

    print("\nSeeding expenses...")
    expenses = build_expenses(user_id, num_expenses)
    DynamoDBClient(settings.expenses_table, settings).batch_write(expenses)

    print("\n" + "=" * 50)
    print("Data seeding complete!")
    print("=" * 50)
    print(f"\nCreated {len(expenses)} expenses for user: {user_id}")


if __name__ == '__main__':
    main()
