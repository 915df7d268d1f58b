
import pandas as pd

df = pd.DataFrame({
    'nim': ['2101001', '2101002', '2101003', '2201004', '2201005'],
    'email': [f'voter{i}@campus.ac.id' for i in range(1, 6)],
    'name': ['Ayu', 'Budi', 'Citra', 'Dimas', 'Eka'],
    'yearClass': [2021, 2021, 2021, 2022, 2022]
})

df.to_csv('test_users.csv', index=False)
print("Created test_users.csv")
