"""Minimal end-to-end upload, predict, and optimize example."""

import sys

from power_bidding.api.client import ApiClient
from power_bidding.config import ConfigStore, build_config
from power_bidding.workflow import StageController


def main(path: str) -> None:
    store = ConfigStore(build_config())
    with ApiClient.from_config(store.get().service) as client:
        controller = StageController(client, store)
        controller.refresh_status()

        upload = controller.start_upload(path)
        print("upload:", upload.state.value, upload.warning or "")
        if not controller.can_predict():
            return

        prediction = controller.run_prediction({"horizon_points": 24})
        print("prediction:", prediction.state.value)
        if not prediction.ok:
            print("error:", prediction.error)
            return
        print("average price:", prediction.result.average_price)

        optimization = controller.run_optimization()
        print("optimization:", optimization.state.value)
        if optimization.ok:
            print("optimal bid:", optimization.result.optimal_price, optimization.result.optimal_power)


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "prices.xlsx")
