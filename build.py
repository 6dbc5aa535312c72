# build.py
import PyInstaller.__main__
import sys

SOURCES = [
    'app.py', 'views.py', 'config.py', 'database.py', 'permissions.py', 'models.py',
    'errors.py', 'resolver.py', 'services.py', 'store.py', 'stats.py', 'capture.py',
    'scanner.py', 'export.py',
]

# Streamlit's import graph is deep
sys.setrecursionlimit(5000)

if __name__ == '__main__':
    sep = ';' if sys.platform.startswith('win') else ':'
    PyInstaller.__main__.run([
        'run_app.py',
        '--name=Asset_Scan_Manager',
        '--onefile',
        '--clean',

        *[f'--add-data={src}{sep}.' for src in SOURCES],

        '--collect-all=streamlit',
        '--collect-all=altair',
        '--collect-all=pandas',
        '--collect-all=plotly',
        '--collect-all=pyzbar',
        '--collect-all=cv2',
        '--collect-all=qrcode',
        '--collect-all=PIL',
        '--collect-all=bcrypt',
        '--collect-all=fpdf',
        '--collect-all=openpyxl',

        '--copy-metadata=streamlit',
        '--copy-metadata=tqdm',
        '--copy-metadata=requests',
        '--copy-metadata=packaging',

        '--exclude-module=pytest',
    ])
