import sys
import os
import logging
import argparse

# Set up sys.path for module imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Track Model import
from trackModel.track_model_backend import TrackNetwork

# Simulation import
from simulation.simulation_backend import Simulation
from simulation.simulation_ui import SimulationMonitorUI

# Universal import
from universal.config import SimulationConfig
from universal.universal import ConversionFunctions, PerformanceEnvelope
# PyQt6 import
from PyQt6.QtWidgets import QApplication

logger = logging.getLogger(__name__)

DEMO_LINE = os.path.join(os.path.dirname(os.path.abspath(__file__)),
                         'trackModel', 'demo_line.csv')


def parse_args():
    parser = argparse.ArgumentParser(
        description='Run the block signaling simulator')
    parser.add_argument('--layout', '-l', default=DEMO_LINE,
                        help='Track layout CSV (segment,x,y)')
    parser.add_argument('--config', '-c', default=None,
                        help='JSON file with simulation settings')
    parser.add_argument('--start', action='store_true',
                        help='Start running immediately instead of paused')
    return parser.parse_args()


def build_demo(network: TrackNetwork, config: SimulationConfig) -> Simulation:
    """Two trains on the first two segments, both running to the end."""
    sim = Simulation(network, config)
    handles = network.handles()
    sim.spawn_train(
        "Train 1",
        PerformanceEnvelope(0.8, 0.8, ConversionFunctions.kmh_to_mps(100)),
        handles, start_index=0)
    sim.spawn_train(
        "Train 2",
        PerformanceEnvelope(0.5, 0.5, ConversionFunctions.kmh_to_mps(30)),
        handles, start_index=1)
    return sim


if __name__ == "__main__":
    args = parse_args()
    config = SimulationConfig.load(args.config) if args.config else SimulationConfig()
    logging.basicConfig(level=config.log_level,
                        format="[%(levelname)s] %(name)s: %(message)s")

    app = QApplication(sys.argv)
    network = TrackNetwork()
    network.load_track_layout(args.layout)
    sim = build_demo(network, config)
    if args.start:
        sim.clock.start()

    window = SimulationMonitorUI(sim)
    window.show()
    logger.info("Monitor ready, press Space to start or pause")
    sys.exit(app.exec())
